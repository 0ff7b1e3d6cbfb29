# tests/conftest.py
"""
Pytest configuration and shared fixtures for Marvin tests
"""
import pytest
from pathlib import Path
from typing import Callable

from marvin.jobs import JobQueue
from marvin.sis_import import AccountImporter, AccountRegistry


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep the user's ~/.marvin and MARVIN_* variables out of every test"""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in (
        "MARVIN_DATA_DIR",
        "MARVIN_MEDIA_HOST",
        "MARVIN_SUMMARY_BATCH_SIZE",
        "MARVIN_RESPONDUS_ENABLED",
        "MARVIN_ROOT_ACCOUNT_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def registry() -> AccountRegistry:
    """Account registry holding only the root account"""
    return AccountRegistry("Test University")


@pytest.fixture
def importer(registry: AccountRegistry) -> AccountImporter:
    """Importer running inside a fresh SIS batch"""
    return AccountImporter(registry, batch=registry.create_batch())


@pytest.fixture
def queue() -> JobQueue:
    return JobQueue()


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write CSV text to a file in tmp_path and return its path"""
    def _write(text: str, name: str = "accounts.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def qti_item() -> Callable[..., str]:
    """Build a QTI 2.1 assessmentItem around response processing XML"""
    def _build(processing: str = "", body: str = "<p>Question?</p>", extra: str = "",
               identifier: str = "item1", title: str = "Question 1", prolog: str = "") -> str:
        return f"""<?xml version="1.0" encoding="UTF-8"?>
{prolog}<assessmentItem xmlns="http://www.imsglobal.org/xsd/imsqti_v2p1"
    identifier="{identifier}" title="{title}" adaptive="false" timeDependent="false">
  <responseDeclaration identifier="RESPONSE" cardinality="single" baseType="string"/>
  <itemBody>{body}<extendedTextInteraction responseIdentifier="RESPONSE"/></itemBody>
  <responseProcessing>{processing}</responseProcessing>
  {extra}
</assessmentItem>
"""
    return _build
