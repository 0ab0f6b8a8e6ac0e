from .numbering_config import DocumentNumberingConfig  # noqa: F401
from .master_document import MasterDocument  # noqa: F401
