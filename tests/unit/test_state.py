from unittest.mock import MagicMock

from querygroup.group import GroupPhase, GroupStateContainer
from querygroup.models import Query, QueryGroupOptions

from conftest import PROM, make_options


def _container(options=None):
    on_change = MagicMock()
    return GroupStateContainer(options or make_options(PROM), on_change), on_change


def test_commit_pushes_copy_equal_to_mirror():
    # Arrange
    container, on_change = _container()

    # Act
    committed = container.commit(queries=[Query.model_validate({"refId": "A", "expr": "up"})], saved_query_uid="s1")

    # Assert
    pushed = on_change.call_args.args[0]
    assert pushed == container.options == committed
    assert pushed is not container.options
    assert pushed.binding_fields() == container.options.binding_fields()
    assert container.revision == 1


def test_commit_without_push_only_updates_mirror():
    container, on_change = _container()

    container.commit(push=False, saved_query_uid="s1", settings=PROM)

    on_change.assert_not_called()
    assert container.options.saved_query_uid == "s1"
    assert container.state.settings is PROM


def test_stale_ticket_is_discarded():
    container, on_change = _container()
    older = container.issue_ticket()
    newer = container.issue_ticket()

    assert container.commit(ticket=newer, saved_query_uid="new") is not None
    assert container.commit(ticket=older, saved_query_uid="old") is None

    assert container.options.saved_query_uid == "new"
    assert on_change.call_count == 1


def test_untracked_commits_do_not_invalidate_tickets():
    container, _ = _container()
    ticket = container.issue_ticket()

    container.commit(saved_query_uid="edit")

    assert not container.is_stale(ticket)
    assert container.commit(ticket=ticket, saved_query_uid="op") is not None


def test_released_container_discards_commits_and_phase_changes():
    container, on_change = _container()
    container.release()

    assert container.commit(saved_query_uid="late") is None
    assert container.replace(QueryGroupOptions()) is None
    container.set_phase(GroupPhase.READY)

    on_change.assert_not_called()
    assert container.phase == GroupPhase.RELEASED


def test_replace_swaps_whole_options_and_keeps_initial():
    initial = make_options(PROM, maxDataPoints=100)
    container, on_change = _container(initial)

    replaced = container.replace(make_options(PROM, minInterval="1m"))

    assert replaced.min_interval == "1m"
    assert replaced.max_data_points is None
    assert container.initial_options == initial
    on_change.assert_called_once()
