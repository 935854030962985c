"""
Inventory request payload factories.

Build JSON-ready request bodies for the transaction, receipt and transfer
endpoints; amounts are strings so decimals arrive exactly.
"""

import factory
from faker import Faker

fake = Faker()


class TransactionRequestFactory(factory.Factory):
    """
    Factory for POST /inventory/transactions bodies.

    Usage:
        body = TransactionRequestFactory(inventory_id=3, transaction_type="add", amount="10")
    """

    class Meta:
        model = dict

    transaction_type = "add"
    amount = factory.LazyFunction(lambda: str(fake.random_int(1, 50)))
    reason = factory.LazyFunction(
        lambda: fake.sentence(nb_words=4) if fake.boolean(chance_of_getting_true=50) else None
    )
    document_reference = factory.LazyFunction(lambda: f"DOC-{fake.random_int(1000, 9999)}")


class InitialPlacementFactory(TransactionRequestFactory):
    """First placement of a product on a shelf."""

    transaction_type = "initial"
    unit = "kg"
    batch_number = factory.LazyFunction(lambda: f"LOT-{fake.random_int(100, 999)}")


class ReceiptRequestFactory(factory.Factory):
    """Factory for POST /inventory/receipts bodies."""

    class Meta:
        model = dict

    amount = factory.LazyFunction(lambda: str(fake.random_int(1, 100)))
    unit = "pcs"
    document_reference = factory.LazyFunction(lambda: f"PO-{fake.random_int(10000, 99999)}")


class TransferRequestFactory(factory.Factory):
    """Factory for POST /inventory/transfers bodies."""

    class Meta:
        model = dict

    amount = "1"
    reason = "rebalancing"
