"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
"""
import pytest
from datetime import date
from django.contrib.auth import get_user_model
from django.test import Client

import factory
from clinic.models import Account, Advice, AdviceRequest, ClinicalReport


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ('username',)

    username = factory.Sequence(lambda n: f'user{n}')
    email = factory.LazyAttribute(lambda u: f'{u.username}@clinic.test')


class PatientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Account

    role = 'patient'
    mrn = factory.Sequence(lambda n: f'PAT{n + 1:04d}')
    full_name = 'Amina Otieno'
    email = factory.Sequence(lambda n: f'patient{n}@clinic.test')
    date_of_birth = date(1990, 4, 12)
    gender = 'female'
    account_status = 'active'
    user = factory.SubFactory(UserFactory)


class PhysicianFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Account

    role = 'physician'
    mrn = None
    full_name = 'Dr. Kim'
    email = factory.Sequence(lambda n: f'physician{n}@clinic.test')
    user = factory.SubFactory(UserFactory)


class AdminFactory(PhysicianFactory):
    role = 'admin'
    full_name = 'Admin'


class ReportFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ClinicalReport

    patient = factory.SubFactory(PatientFactory)
    author = factory.SubFactory(PhysicianFactory)
    diagnosis = 'Type 2 diabetes'
    treatment = 'Metformin'


class AdviceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Advice

    patient = factory.SubFactory(PatientFactory)
    author = factory.SubFactory(PhysicianFactory)
    condition = 'Hypertension'
    advice = 'Reduce salt intake.'
    medications = 'Amlodipine 5mg'
    status = 'pending'


class AdviceRequestFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AdviceRequest

    patient = factory.SubFactory(PatientFactory)
    subject = 'Headaches'
    description = 'Frequent headaches in the morning.'
    urgency = 'medium'


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def physician(db):
    return PhysicianFactory()


@pytest.fixture
def admin_account(db):
    return AdminFactory()


@pytest.fixture
def patient(db):
    return PatientFactory()


def login_as(client, account):
    client.force_login(account.user)
    return client
