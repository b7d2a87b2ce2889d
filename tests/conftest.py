import pytest

from unitflow.config import BranchLayoutConfig, ConversionConfig, LayeredLayoutConfig
from unitflow.workflow.workflow_model import TriggerIR


@pytest.fixture
def webhook_trigger():
    return TriggerIR(type="webhook", config={})


@pytest.fixture
def conversion_config():
    return ConversionConfig.default()


@pytest.fixture
def branch_config():
    return BranchLayoutConfig()


@pytest.fixture
def layered_config():
    return LayeredLayoutConfig()
