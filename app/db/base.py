import re

from sqlalchemy.orm import as_declarative, declared_attr


@as_declarative()
class Base:
    # Class 'MasterDocument' automatically becomes table 'master_document'
    @declared_attr
    def __tablename__(cls) -> str:
        return re.sub(r'(?<!^)(?=[A-Z])', '_', cls.__name__).lower()
