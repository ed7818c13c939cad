"""Shared fixtures for autorouter tests."""

import pytest
from loguru import logger

from autorouter.config.loader import reset_keyword_config_cache
from autorouter.config.normalizer import load_default_raw_config, normalize_config
from autorouter.config.schema import ModelSpec
from autorouter.metrics import get_metrics
from autorouter.router.gauge import get_gauge

REASONER_SPECS = {
    "optimism_reasoner",
    "optimism_builder",
    "optimism_analyst",
    "optimism_researcher",
    "optimism_strategy",
}

SPEC_NAMES = [
    "optimism_companion",
    "optimism_reasoner",
    "optimism_writer",
    "optimism_builder",
    "optimism_analyst",
    "optimism_researcher",
    "optimism_summarizer",
    "optimism_translator",
    "optimism_planner",
    "optimism_brainstormer",
    "optimism_supporter",
    "optimism_strategy",
    "optimism_quick",
    "optimism_voice",
]


def make_spec(name, model=None):
    """Spec pointing at the Deepseek endpoint, like the production catalog."""
    return ModelSpec(
        name=name,
        label=name,
        preset={
            "endpoint": "Deepseek",
            "model": model or ("deepseek-reasoner" if name in REASONER_SPECS else "deepseek-chat"),
            "modelLabel": "OptimismAI",
            "promptPrefix": f"{name} instructions",
        },
    )


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point the keyword config at a missing file so the bundled default applies."""
    monkeypatch.setenv("AUTO_ROUTER_KEYWORD_CONFIG", str(tmp_path / "missing.json"))
    reset_keyword_config_cache()
    yield
    reset_keyword_config_cache()


@pytest.fixture(autouse=True)
def clean_state():
    """Reset process-wide gauge and metrics between tests."""
    get_gauge().reset()
    get_metrics().reset()
    yield
    get_gauge().reset()


@pytest.fixture
def default_config():
    return normalize_config(load_default_raw_config())


@pytest.fixture
def spec_list():
    return [make_spec(name) for name in SPEC_NAMES]


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    try:
        logger.remove(handler_id)
    except ValueError:
        # Already removed by a CLI run that reconfigured logging
        pass


@pytest.fixture
def spec_factory():
    return make_spec
