"""
Factory Boy factories for directory test data.
"""

import factory

from directory.models import Business
from members.tests.factories import MemberFactory


class BusinessFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Business

    owner = factory.SubFactory(MemberFactory)
    name = factory.Sequence(lambda n: f"Corner Cafe {n}")
    slug = factory.Sequence(lambda n: f"corner-cafe-{n}")
    city = "Portland"
    categories = factory.LazyFunction(lambda: ["Food"])
