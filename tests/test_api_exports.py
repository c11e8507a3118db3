"""Ensure the top-level package exports the harness API."""

import phaseharness


def test_public_names_are_exported():
    for name in phaseharness.__all__:
        assert hasattr(phaseharness, name), name


def test_core_entry_points_are_available():
    from phaseharness import (
        AssertionProbe,
        ComponentTestCase,
        HarnessSettings,
        PhaseOrchestrator,
        load_settings,
        logger,
    )

    assert callable(load_settings)
    assert issubclass(PhaseOrchestrator, object)
    assert ComponentTestCase.__abstractmethods__ == frozenset({
        "get_perf_test_result_message",
        "get_thread_safety_result_message",
        "generate_test_data",
        "get_component_under_test",
        "verify_functionality",
    })
    assert HarnessSettings().performance_items == 50
    assert AssertionProbe is phaseharness.instrumentation.AssertionProbe
    assert logger is phaseharness.logger


def test_importing_under_pytest_does_not_install_harness_sinks():
    assert not phaseharness.get_logger_state().sink_ids or phaseharness.is_test_mode()


def test_version_is_set():
    assert phaseharness.__version__ == "0.1.0"
