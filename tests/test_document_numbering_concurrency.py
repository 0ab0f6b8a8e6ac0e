from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.session import build_engine
from app.services.document_numbering_service import DocumentNumberingService, parse_document_number

WORKERS = 8


def test_concurrent_generation_never_repeats_a_sequence(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'numbering.db'}")
    Base.metadata.create_all(engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = SessionFactory()
    try:
        DocumentNumberingService.initialize_project_numbering(
            setup, "proj-race", "RACE", created_by="admin@example.com"
        )
        setup.commit()
    finally:
        setup.close()

    def _generate(_):
        db = SessionFactory()
        try:
            return DocumentNumberingService.generate_document_number(
                db, "proj-race", None, "02", "A"
            )
        finally:
            db.close()

    try:
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            numbers = list(pool.map(_generate, range(WORKERS)))

        assert len(set(numbers)) == WORKERS
        sequences = sorted(int(parse_document_number(n).sequence) for n in numbers)
        assert sequences == list(range(1, WORKERS + 1))

        check = SessionFactory()
        try:
            config = DocumentNumberingService.get_numbering_config(check, "proj-race")
            assert config.sequence_counters == {"02-A": WORKERS}
        finally:
            check.close()
    finally:
        engine.dispose()
