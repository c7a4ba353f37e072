# Ensure tests import `adt_bridge` from this checkout even without an install.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)


@pytest.fixture
def dev_project():
    """An open project bound to the shared fake destination."""
    from adt_bridge.utils_tests.fake_backend import DESTINATION
    from adt_bridge.workspace.discovery import AdtProject

    return AdtProject(name="DEV", destination=DESTINATION)
