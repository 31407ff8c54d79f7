"""
Shared fixtures and step definitions for BDD tests.

- runner, context, signed_in: available to all scenario files in this directory
- no_logging: autouse, prevents log file creation during tests
- 'the output contains' step: shared across all feature files
"""

import pytest
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import given, then, parsers

from prospectcrm.engine.session import UserViewContext, GLOBAL_VIEW, GLOBAL_VIEW_LABEL
from prospectcrm.models import Profile, UserOption


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("prospectcrm.cli.main.configure_logging"):
        yield


@pytest.fixture
def signed_in(context):
    """Patches the session lookup; Given steps decide who is signed in."""
    with patch("prospectcrm.cli.main._context") as mock_ctx:
        context["ctx"] = mock_ctx
        yield mock_ctx


@given("a salesperson is signed in")
def salesperson_signed_in(signed_in):
    signed_in.return_value = UserViewContext(
        current_user_id="u1", role="commercial", email="camille@example.fr",
        profile=Profile(id="u1", prenom="Camille", nom="Durand"),
        users=[UserOption(id="u1", label="Camille Durand")], selected_user_id="u1",
    )


@given("an admin is signed in")
def admin_signed_in(signed_in):
    signed_in.return_value = UserViewContext(
        current_user_id="u9", role="admin", email="direction@example.fr",
        profile=Profile(id="u9", prenom="Sam", nom="Leroy", role="admin"),
        users=[
            UserOption(id="u1", label="Camille Durand"),
            UserOption(id="u9", label="Sam Leroy"),
            UserOption(id=GLOBAL_VIEW, label=GLOBAL_VIEW_LABEL),
        ],
        selected_user_id="u9",
    )


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@pytest.fixture
def backend():
    """
    Patches every read the establishment editor makes, plus the writes it can
    trigger. Returns the mocks by name.
    """
    from prospectcrm.models import Establishment, EstablishmentDetail, ReferenceEntry

    detail = EstablishmentDetail(
        establishment=Establishment(id="e1", nom="Hôtel Bellecour", statut="client",
                                    ville="Lyon", concurrent_id="p2"),
        concurrent="Randstad",
    )
    references = {
        "groupe": [], "secteur": [], "activite": [],
        "concurrent": [ReferenceEntry(id="p2", categorie="concurrent", valeur="Randstad")],
    }
    with patch("prospectcrm.engine.establishments.get_establishment", return_value=detail) as get_est, \
         patch("prospectcrm.engine.establishments.update_establishment") as update_est, \
         patch("prospectcrm.engine.parametrage.grouped_entries", return_value=references), \
         patch("prospectcrm.engine.contacts.list_contacts", return_value=[]), \
         patch("prospectcrm.engine.actions.list_actions", return_value=[]) as list_actions, \
         patch("prospectcrm.engine.actions.table") as action_table, \
         patch("prospectcrm.engine.competitors.list_history", return_value=[]), \
         patch("prospectcrm.engine.competitors.table") as competitor_table, \
         patch("prospectcrm.bus.events.bus.emit"):
        yield {
            "get_establishment": get_est,
            "update_establishment": update_est,
            "list_actions": list_actions,
            "action_table": action_table,
            "competitor_table": competitor_table,
        }


@given(parsers.parse('establishment "{establishment_id}" can be opened'))
def establishment_can_be_opened(backend, establishment_id):
    backend["get_establishment"].return_value.establishment.id = establishment_id
