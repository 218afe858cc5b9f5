from unittest.mock import MagicMock
from unittest.mock import patch

import lobotomy

from killer import _configs
from killer import _runner
from killer import _types
from killer.tests import _utils

ARGS = {"aws_profile": "fake", "external": True, "live": True}


def _make_configs() -> "_types.KillerConfigs":
    configs = _utils.make_configs()
    configs.interval = 0
    configs.external = True
    configs.critical_error_threshold = 1
    return configs


@lobotomy.patch()
@patch("signal.signal")
@patch("kuber.load_access_config")
@patch("killer._types.KillerConfigs.load")
@patch("killer._controller.list_preemptible_nodes")
@patch("killer._lifecycle.process_node")
def test_main(
    process_node: MagicMock,
    list_preemptible_nodes: MagicMock,
    killer_configs_load: MagicMock,
    kuber_load_access_config: MagicMock,
    signal_signal: MagicMock,
    lobotomized: lobotomy.Lobotomy,
):
    """Should execute the poll loop until the errors become critical."""
    killer_configs_load.return_value = _make_configs()
    list_preemptible_nodes.side_effect = [
        [_utils.make_node("node-1"), _utils.make_node("node-2")],
        [_utils.make_node("node-1")],
        ValueError("FAKE"),
    ]
    process_node.side_effect = [
        _configs.ANNOTATED_OUTCOME,
        _configs.ANNOTATED_OUTCOME,
        _configs.KILLED_OUTCOME,
    ]
    status = _runner.Status()

    result = _runner.main(ARGS, status=status)
    assert result == 1
    assert kuber_load_access_config.call_count == 3
    kuber_load_access_config.assert_called_with(in_cluster=False)
    assert process_node.call_count == 3
    assert status.outcomes[_configs.ANNOTATED_OUTCOME] == 2
    assert status.outcomes[_configs.KILLED_OUTCOME] == 1


@lobotomy.patch()
@patch("signal.signal")
@patch("kuber.load_access_config")
@patch("killer._types.KillerConfigs.load")
@patch("killer._controller.list_preemptible_nodes")
@patch("killer._lifecycle.process_node")
def test_main_stopping(
    process_node: MagicMock,
    list_preemptible_nodes: MagicMock,
    killer_configs_load: MagicMock,
    kuber_load_access_config: MagicMock,
    signal_signal: MagicMock,
    lobotomized: lobotomy.Lobotomy,
):
    """Should finish the current node and stop once a shutdown is requested."""
    killer_configs_load.return_value = _make_configs()
    list_preemptible_nodes.return_value = [
        _utils.make_node("node-1"),
        _utils.make_node("node-2"),
    ]
    status = _runner.Status()

    def stop(*args, **kwargs):
        status.stopping.set()
        return _configs.SKIPPED_OUTCOME

    process_node.side_effect = stop

    result = _runner.main(ARGS, status=status)
    assert result == 0
    assert process_node.call_count == 1
    assert list_preemptible_nodes.call_count == 1
    assert status.outcomes[_configs.SKIPPED_OUTCOME] == 1


@lobotomy.patch()
@patch("signal.signal")
@patch("kuber.load_access_config")
@patch("killer._types.KillerConfigs.load")
@patch("killer._controller.list_preemptible_nodes")
@patch("killer._lifecycle.process_node")
def test_main_node_failure(
    process_node: MagicMock,
    list_preemptible_nodes: MagicMock,
    killer_configs_load: MagicMock,
    kuber_load_access_config: MagicMock,
    signal_signal: MagicMock,
    lobotomized: lobotomy.Lobotomy,
):
    """Should count an unexpected node error as failed and carry on."""
    killer_configs_load.return_value = _make_configs()
    list_preemptible_nodes.side_effect = [
        [_utils.make_node("node-1"), _utils.make_node("node-2")],
        ValueError("FAKE"),
    ]
    process_node.side_effect = [RuntimeError("FAKE"), _configs.SKIPPED_OUTCOME]
    status = _runner.Status()

    result = _runner.main(ARGS, status=status)
    assert result == 1
    assert process_node.call_count == 2
    assert status.outcomes[_configs.FAILED_OUTCOME] == 1
    assert status.outcomes[_configs.SKIPPED_OUTCOME] == 1


@lobotomy.patch()
@patch("signal.signal")
@patch("kuber.load_access_config")
@patch("killer._types.KillerConfigs.load")
@patch("killer._controller.list_preemptible_nodes")
def test_main_refresh_failure(
    list_preemptible_nodes: MagicMock,
    killer_configs_load: MagicMock,
    kuber_load_access_config: MagicMock,
    signal_signal: MagicMock,
    lobotomized: lobotomy.Lobotomy,
):
    """Should keep the current configs when refreshing them fails."""
    configs = _make_configs()
    configs.config_refresh_interval = -1
    killer_configs_load.side_effect = [
        configs,
        _types.ConfigurationError("FAKE"),
        _types.ConfigurationError("FAKE"),
    ]
    list_preemptible_nodes.side_effect = [[], ValueError("FAKE")]

    result = _runner.main(ARGS, status=_runner.Status())
    assert result == 1
    assert killer_configs_load.call_count == 3
    list_preemptible_nodes.assert_called_with(configs)
