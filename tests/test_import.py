"""Test basic package imports."""


def test_package_import():
    """Test that the main package can be imported."""
    import booth_notifier

    assert booth_notifier.__version__ == "0.1.0"


def test_main_module_import():
    """Test that main modules can be imported."""
    from booth_notifier import interfaces, main, orchestrator

    assert callable(main.main)
    assert hasattr(orchestrator, "ApplicationOrchestrator")
    assert hasattr(interfaces, "IDestinationTransport")


def test_components_import():
    """Test that component and service modules can be imported."""
    from booth_notifier.components import (
        AlertFormatter,
        ChangeDetector,
        DestinationRouter,
        FilterEngine,
    )
    from booth_notifier.services import ConfigurationManager, SQLiteRepository

    assert all(
        cls is not None
        for cls in (
            AlertFormatter,
            ChangeDetector,
            DestinationRouter,
            FilterEngine,
            ConfigurationManager,
            SQLiteRepository,
        )
    )
