import pytest
from django.test import TestCase


@pytest.fixture(autouse=True)
def _allow_connection_health_check(request, django_db_blocker):
	# Consumers run django.db.close_old_connections() on disconnect, which
	# health-checks connections left open by earlier TestCase tests. Django's
	# runner permits that inside SimpleTestCase; pytest-django blocks it.
	if request.cls is None or issubclass(request.cls, TestCase):
		yield
		return
	with django_db_blocker.unblock():
		yield
