# Models package — import all models here so Alembic can discover them.

from storefront.models.product import Product  # noqa: F401
from storefront.models.customer import CustomerInformation  # noqa: F401
from storefront.models.transaction import Transaction, TransactionItem  # noqa: F401
