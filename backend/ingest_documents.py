"""
Document Ingestion Script for the Book RAG comparison backend.

This script:
1. Validates and stores an embedding configuration
2. Loads a PDF book
3. Cleans, chunks and embeds it through the indexing pipeline
4. Stores the chunk set in Supabase

Usage:
    python ingest_documents.py path/to/book.pdf --book-id <uuid> --chunk-size 1000 --overlap 200
"""
import argparse
import asyncio
import sys
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.book_store import BookStore
from services.chunk_store import ChunkStore
from services.document_loader import DocumentLoader
from services.embedding_model import EmbeddingModel
from services.pipeline_controller import PipelineController, PipelineState, PipelineStep
from models.embedding_config import EmbeddingConfig, CleanerStrategy, SplitStrategy
from config import DEFAULT_BATCH_SIZE, DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, EMBEDDING_MODEL, LOG_LEVEL
from errors import ConfigurationError, NotFoundError, PipelineStateError
from logger import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index a PDF book for RAG and GraphRAG retrieval")
    parser.add_argument("pdf", type=Path, help="PDF file to index")
    parser.add_argument("--book-id", required=True, help="Id of the stored book record")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    parser.add_argument("--overlap", type=int, default=DEFAULT_OVERLAP)
    parser.add_argument("--cleaner", default=CleanerStrategy.SIMPLE.value,
                        choices=[s.value for s in CleanerStrategy])
    parser.add_argument("--strategy", default=SplitStrategy.RECURSIVE.value,
                        choices=[s.value for s in SplitStrategy])
    parser.add_argument("--model", default=EMBEDDING_MODEL)
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
    parser.add_argument("--name", help="Label for this configuration")
    return parser.parse_args(argv)


def log_progress(state: PipelineState) -> None:
    if state.step is PipelineStep.EMBEDDING and state.chunks_total:
        logger.info(f"  [{state.step.value}] {state.chunks_embedded}/{state.chunks_total} chunks")
    else:
        logger.info(f"  [{state.step.value}] {state.message}")


async def ingest(args: argparse.Namespace) -> PipelineState:
    """Run one full indexing pass and return its terminal state."""
    # Step 1: Validate configuration before touching any provider
    logger.info("\n[1/4] Validating configuration...")
    config = EmbeddingConfig(
        chunk_size=args.chunk_size,
        overlap=args.overlap,
        cleaner_strategy=args.cleaner,
        split_strategy=args.strategy,
        model=args.model,
        batch_size=args.batch_size,
        name=args.name
    )

    book_store = BookStore()
    book = book_store.get_book(args.book_id)
    logger.info(f"✓ Indexing '{book.title}'")

    # Step 2: Warm up embedding provider
    logger.info("\n[2/4] Warming up embedding provider...")
    embedding_model = EmbeddingModel()
    await embedding_model.warmup()

    # Step 3: Load the PDF
    logger.info("\n[3/4] Loading PDF...")
    document = DocumentLoader().load_file(args.pdf)
    logger.info(f"✓ Loaded {document.total_pages} pages")

    # Step 4: Run the pipeline
    logger.info("\n[4/4] Cleaning, chunking and embedding...")
    config = book_store.create_embedding_config(config)
    controller = PipelineController(embedding_model, ChunkStore(), book.id, config)
    controller.subscribe(log_progress)
    state = await controller.run(document)

    if state.step is PipelineStep.READY:
        logger.info("\n" + "=" * 60)
        logger.info("INGESTION COMPLETE!")
        logger.info("=" * 60)
        logger.info(f"Embedding configuration: {config.id}")
        logger.info(f"Chunks stored: {state.chunks_total}")
    return state


def main(argv=None):
    """Main ingestion process."""
    setup_logging(LOG_LEVEL)
    args = parse_args(argv)

    try:
        state = asyncio.run(ingest(args))
    except (ConfigurationError, NotFoundError, PipelineStateError) as e:
        logger.error(f"Ingestion not started: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.warning("\nIngestion interrupted by user")
        sys.exit(1)

    if state.step is PipelineStep.ERROR:
        logger.error(f"Ingestion failed during {state.failed_step.value}: {state.error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
