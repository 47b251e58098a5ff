#!/usr/bin/env python3
"""
Precompute schema-catalog embeddings.

Embeds embedding_text() of every catalog table with the configured
backend and writes the JSON cache that SchemaContextProvider loads at
startup, so the first question does not pay for indexing.

USAGE:
======
    python scripts/seed_metadata_embeddings.py
    EMBEDDING_BACKEND=local python scripts/seed_metadata_embeddings.py --out data/schema_embeddings.json
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from configs import EMBEDDING_BACKEND, EMBEDDINGS_CACHE_PATH, ConfigurationError, load_provider_config
from matchsql.api.deps import setup_logging
from matchsql.catalog import SCHEMA_METADATA, embedding_text
from matchsql.orchestrator import create_llm_client
from matchsql.utils import LocalEmbedder, SchemaVectorStore


def build_store() -> SchemaVectorStore:
    if EMBEDDING_BACKEND == "local":
        return SchemaVectorStore(LocalEmbedder(), LocalEmbedder.name)
    config = load_provider_config()
    llm = create_llm_client(config)
    return SchemaVectorStore(llm.embed, config.embedding_model)


def main():
    parser = argparse.ArgumentParser(description="Precompute catalog table embeddings")
    parser.add_argument("--out", default=EMBEDDINGS_CACHE_PATH, help="JSON cache file to write")
    args = parser.parse_args()

    logger = setup_logging()
    try:
        store = build_store()
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)

    for table in SCHEMA_METADATA:
        store.add_table(table.table_name, embedding_text(table))
        logger.info("Embedded %s", table.table_name)

    store.save(args.out)
    print(f"[OK] Wrote {len(store)} table embeddings to {args.out}")


if __name__ == "__main__":
    main()
