import argparse

from app.db.session import SessionLocal
from app.services.document_errors import NumberingAlreadyInitializedError
from app.services.document_numbering_service import DocumentNumberingService


def main():
    parser = argparse.ArgumentParser(
        description="Seed a project's document numbering with the standard discipline catalog."
    )
    parser.add_argument("project_id")
    parser.add_argument("project_code")
    parser.add_argument("--separator", default=None)
    parser.add_argument("--sequence-digits", type=int, default=None)
    parser.add_argument("--user", default="system@local")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        try:
            config = DocumentNumberingService.initialize_project_numbering(
                db,
                args.project_id,
                args.project_code,
                created_by=args.user,
                separator=args.separator,
                sequence_digits=args.sequence_digits,
            )
        except NumberingAlreadyInitializedError as exc:
            print(f"Skipped: {exc}")
            return
        db.commit()
        print(
            f"Seed complete. Project {config.project_id} uses code {config.project_code} "
            f"with {len(config.disciplines)} disciplines."
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
