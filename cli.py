#!/usr/bin/env python3
"""
Command Line Interface for MatchSQL.
Shows how each question moves through the correction loop.

DESIGN PRINCIPLES:
- Show the extracted intent and where the final query came from
- Show every attempt, its auto-fixes and its error
- Clean structure suitable for demos and debugging

MODES:
- Interactive (default): ask questions until 'exit'
- Single question (-q): ask one question and exit
- Raw SQL (--execute): run a read-only statement through the gateway
- Stats (--stats): auto-fix counters after the questions in this session
- Demo (--demo): runs curated questions covering both query paths
- Config check (--check-config): provider credentials and database location
"""
import sys
import argparse
from datetime import datetime
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.syntax import Syntax
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from configs import ConfigurationError, LLM_PROVIDER, RESULT_ROW_LIMIT, validate_configuration
from matchsql.adapters import DatabaseError, ExecutionGateway, UnsupportedStatement, create_adapter_from_settings
from matchsql.api.deps import setup_logging
from matchsql.models import PipelineResult, Provenance
from matchsql.orchestrator import CorrectionOrchestrator, create_orchestrator

console = Console()


# ============================================================
# DEMO MODE CONFIGURATION
# ============================================================

DEMO_QUESTIONS = [
    {
        "category": "Deterministic build",
        "question": "Show me doctors in Pune",
        "description": "Fully mapped intent, no generative synthesis",
    },
    {
        "category": "Count shape",
        "question": "How many women between 25 and 30 speak Marathi?",
        "description": "COUNT(DISTINCT profile_id) with age and language joins",
    },
    {
        "category": "Name lookup",
        "question": "Show me Neha's profile",
        "description": "Name filter on first or last name",
    },
    {
        "category": "Origin vs residence",
        "question": "Engineers originally from Nagpur earning more than 15 LPA",
        "description": "native_place, not city; income threshold",
    },
    {
        "category": "Generative path",
        "question": "Which profiles list trekking as a hobby and prefer a joint family?",
        "description": "Criteria outside the fixed mappings go through synthesis",
    },
]

PROVENANCE_LABELS = {
    Provenance.BUILT_DETERMINISTICALLY: ("built", "green"),
    Provenance.GENERATED: ("generated", "yellow"),
    Provenance.CORRECTED: ("corrected", "cyan"),
}


def print_header():
    """Print the application header."""
    header = """
╔═══════════════════════════════════════════════════════════════╗
║         MatchSQL v1.0                                         ║
║         Natural-language search over matrimonial profiles     ║
╚═══════════════════════════════════════════════════════════════╝
    """
    console.print(header, style="bold blue")


def print_execution_header(question: str):
    """Question, timestamp and configuration."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    info_table = Table.grid(padding=(0, 2))
    info_table.add_column(style="cyan", justify="right")
    info_table.add_column(style="white")

    info_table.add_row("Question:", f"[bold]{question}[/bold]")
    info_table.add_row("Timestamp:", timestamp)
    info_table.add_row("LLM Provider:", f"[green]{LLM_PROVIDER}[/green]")
    info_table.add_row("Row limit:", str(RESULT_ROW_LIMIT))

    console.print(Panel(info_table, border_style="blue", padding=(1, 2)))


def print_intent(result: PipelineResult):
    """Extracted (attribute, value) pairs."""
    source = "[yellow]rule-based fallback[/yellow]" if result.intent_degraded else "[green]generative[/green]"
    console.print(f"\n[bold cyan]INTENT[/bold cyan] ({source}, shape={result.shape.value})")

    if result.extracted_intent.is_empty:
        console.print("  [dim]no explicit criteria[/dim]")
        return

    for item in result.extracted_intent.items:
        console.print(f"  • {item.attribute} = [bold]{item.value}[/bold]")


def print_attempts(result: PipelineResult, verbose: bool = False):
    """One row per attempt: provenance, fixes, error."""
    table = Table(box=box.SIMPLE, title="Attempts", title_justify="left")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Source")
    table.add_column("Auto-fixes")
    table.add_column("Outcome")

    for attempt in result.attempts:
        label, color = PROVENANCE_LABELS[attempt.provenance]
        if attempt.succeeded:
            outcome = f"[green]{attempt.row_count} rows[/green]"
        else:
            outcome = f"[red]{attempt.validation_error or attempt.execution_error}[/red]"
        table.add_row(str(attempt.number), f"[{color}]{label}[/{color}]", ", ".join(attempt.fixes) or "-", outcome)

    console.print(table)

    if verbose:
        for attempt in result.attempts:
            console.print(f"[dim]Attempt {attempt.number} SQL:[/dim]")
            console.print(Syntax(attempt.query or "-", "sql", theme="monokai"))


def print_sql_section(sql: str):
    """Display SQL with syntax highlighting."""
    console.print(f"\n[bold cyan]{'═' * 70}[/bold cyan]")
    console.print("[bold cyan]SQL[/bold cyan]", justify="center")
    console.print(f"[bold cyan]{'═' * 70}[/bold cyan]\n")
    if sql:
        console.print(Syntax(sql, "sql", theme="monokai", line_numbers=True))
    else:
        console.print("  [dim]No SQL produced[/dim]")


def print_rows(rows: List[dict], max_rows: int = 20):
    """Rows as a rich table."""
    if not rows:
        console.print("[yellow]No matching profiles.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_lines=False)
    columns = list(rows[0].keys())
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows[:max_rows]:
        table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])

    console.print(table)
    if len(rows) > max_rows:
        console.print(f"[dim]... {len(rows) - max_rows} more rows[/dim]")


def print_metrics_summary(result: PipelineResult):
    """Timing, attempts and token usage."""
    metrics = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    metrics.add_column(style="cyan", justify="right")
    metrics.add_column(style="white")

    status = "[bold green]SUCCESS[/bold green]" if result.success else f"[bold red]{result.error_type}[/bold red]"
    metrics.add_row("Status:", status)
    metrics.add_row("Total time:", f"{result.elapsed_ms:.0f} ms")
    metrics.add_row("Attempts:", str(result.attempt_count))
    if result.provenance is not None:
        metrics.add_row("Final query:", PROVENANCE_LABELS[result.provenance][0])
    if result.token_usage is not None:
        metrics.add_row("Tokens:", f"{result.token_usage.total} ({result.token_usage.input} in / {result.token_usage.output} out)")
    metrics.add_row("Schema context:", ", ".join(result.schema_tables) or "-")

    console.print(metrics)


def print_result(result: PipelineResult, verbose: bool = False):
    print_intent(result)
    print_sql_section(result.generated_sql)
    print_attempts(result, verbose=verbose)
    if result.success:
        print_rows(result.data)
    else:
        console.print(Panel(result.error or "unknown error", title=f"[bold red]{result.error_type}[/bold red]", border_style="red"))
    print_metrics_summary(result)


def ask_with_spinner(orchestrator: CorrectionOrchestrator, question: str) -> PipelineResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        progress.add_task(description="Running correction loop...", total=None)
        return orchestrator.process_question_sync(question)


# ============================================================
# MODES
# ============================================================

def interactive_mode(orchestrator: CorrectionOrchestrator, verbose: bool = False):
    """Ask questions until 'exit'; ':stats' prints the auto-fix counters."""
    print_header()
    console.print("[dim]Type your questions in natural language. Type 'exit' or 'quit' to stop, ':stats' for counters.[/dim]\n")

    while True:
        try:
            console.print("[bold cyan]" + "─" * 70 + "[/bold cyan]")
            question = console.input("[bold yellow]Your question: [/bold yellow]")

            if question.lower() in ["exit", "quit", "q"]:
                console.print("\n[bold green]Goodbye![/bold green]")
                break
            if question.strip() == ":stats":
                print_stats(orchestrator)
                continue
            if not question.strip():
                console.print("[yellow]Please enter a question.[/yellow]")
                continue

            print_execution_header(question)
            print_result(ask_with_spinner(orchestrator, question), verbose=verbose)

        except KeyboardInterrupt:
            console.print("\n\n[bold green]Interrupted. Goodbye![/bold green]")
            break


def single_question_mode(orchestrator: CorrectionOrchestrator, question: str, verbose: bool = False) -> int:
    print_header()
    print_execution_header(question)
    result = ask_with_spinner(orchestrator, question)
    print_result(result, verbose=verbose)
    return 0 if result.success else 2


def execute_mode(sql: str) -> int:
    """Run raw SQL through the read-only gateway."""
    gateway = ExecutionGateway(create_adapter_from_settings)
    print_sql_section(sql)
    try:
        rows = gateway.run(sql)
    except UnsupportedStatement as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        return 2
    except DatabaseError as e:
        console.print(f"[bold red]Execution failed:[/bold red] {e}")
        return 2
    print_rows(rows)
    console.print(f"[dim]{len(rows)} rows[/dim]")
    return 0


def print_stats(orchestrator: CorrectionOrchestrator):
    stats = orchestrator.get_stats()
    for section, counts in stats["validator"].items():
        table = Table(title=section, box=box.SIMPLE, title_justify="left")
        table.add_column("name", style="cyan")
        table.add_column("count", justify="right")
        for name, count in sorted(counts.items()):
            table.add_row(name, str(count))
        if not counts:
            table.add_row("[dim]none[/dim]", "0")
        console.print(table)
    if stats.get("llm"):
        console.print(stats["llm"])


def demo_mode(orchestrator: CorrectionOrchestrator, verbose: bool = False):
    """Run the curated questions one after another."""
    print_header()
    for i, demo in enumerate(DEMO_QUESTIONS, 1):
        console.print(Panel(
            f"[bold yellow]DEMO {i}/{len(DEMO_QUESTIONS)}[/bold yellow]\n\n"
            f"[bold]{demo['category']}[/bold]\n"
            f"[cyan]Question:[/cyan] {demo['question']}\n"
            f"[dim]{demo['description']}[/dim]",
            border_style="yellow",
            padding=(0, 2)
        ))
        print_result(ask_with_spinner(orchestrator, demo["question"]), verbose=verbose)

    print_stats(orchestrator)


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="MatchSQL - natural-language search over matrimonial profiles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py                                   # Interactive mode
  python cli.py -q "Show me doctors in Pune"      # Single question
  python cli.py -q "..." --verbose --stats        # Attempt SQL and counters
  python cli.py --execute "SELECT COUNT(*) AS n FROM profiles p"
  python cli.py --demo                            # Curated questions
  python cli.py --check-config                    # Validate .env settings
        """
    )
    parser.add_argument("-q", "--question", type=str, help="Ask a single question and exit")
    parser.add_argument("--execute", type=str, metavar="SQL", help="Run a read-only SQL statement")
    parser.add_argument("--stats", action="store_true", help="Print auto-fix counters after running")
    parser.add_argument("--demo", action="store_true", help="Run the curated demo questions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show every attempt's SQL and pipeline logs")
    parser.add_argument("--check-config", action="store_true", help="Validate configuration and exit")

    args = parser.parse_args()

    logger = setup_logging()
    if not args.verbose:
        logger.setLevel("WARNING")

    if args.check_config:
        try:
            config = validate_configuration()
        except ConfigurationError as e:
            console.print(f"[bold red]{e}[/bold red]")
            sys.exit(1)
        console.print(f"[green]Configuration OK[/green] provider={config['llm_provider']} "
                      f"database={config['database_type']}")
        sys.exit(0)

    if args.execute:
        sys.exit(execute_mode(args.execute))

    try:
        orchestrator = create_orchestrator()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    exit_code = 0
    if args.demo:
        demo_mode(orchestrator, verbose=args.verbose)
    elif args.question:
        exit_code = single_question_mode(orchestrator, args.question, verbose=args.verbose)
    else:
        interactive_mode(orchestrator, verbose=args.verbose)

    if args.stats:
        print_stats(orchestrator)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
