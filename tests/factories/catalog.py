"""
Catalog test factories.

Generates product and shelf rows for seeding the test database.
"""

import factory
from faker import Faker

fake = Faker()


class ProductFactory(factory.Factory):
    """
    Factory for generating Product test data.

    Usage:
        product = ProductFactory()
        product = ProductFactory(primary_unit="kg")
    """

    class Meta:
        model = dict

    sku = factory.Sequence(lambda n: f"SKU-{n:05d}")
    name = factory.LazyFunction(lambda: fake.catch_phrase()[:255])
    primary_unit = "pcs"
    is_active = True


class BulkProductFactory(ProductFactory):
    """Products stocked by weight."""

    primary_unit = "kg"


class ShelfFactory(factory.Factory):
    """Factory for generating Shelf test data."""

    class Meta:
        model = dict

    shelf_code = factory.Sequence(lambda n: f"S-{n:03d}")
    rack_code = factory.LazyFunction(lambda: f"R-{fake.random_int(1, 40):02d}")
    warehouse_name = factory.LazyFunction(lambda: f"{fake.city()} DC")
