import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from adt_bridge.backend.base import Destination
from adt_bridge.vars import (
    ADT_WORKSPACE_FILE,
    SAP_ADT_CLIENT,
    SAP_ADT_DESTINATION,
    SAP_ADT_LANGUAGE,
    SAP_ADT_PASSWORD,
    SAP_ADT_URL,
    SAP_ADT_USER,
    SAP_ADT_VERIFY_TLS,
)

logger = logging.getLogger("uvicorn.error")

NO_PROJECT = "no_adt_project"


class WorkspaceError(Exception):
    """The workspace description exists but cannot be used."""


@dataclass(frozen=True)
class AdtProject:
    name: str
    destination: Destination


class ProjectDiscovery(ABC):
    """Finds the single active ADT project. Called on every request; must not cache."""

    @abstractmethod
    def find_project(self) -> Optional[AdtProject]:
        pass

    def project_status(self) -> str:
        try:
            project = self.find_project()
            if project is None:
                return NO_PROJECT
            return f"connected:{project.destination.id}"
        except Exception as e:
            return f"error:{e}"


def _destination_id_for(url: str, client: str) -> str:
    host = url.split("://", 1)[-1].split("/", 1)[0].split(":", 1)[0]
    return f"{host}_{client}" if client else host


class EnvProjectDiscovery(ProjectDiscovery):
    """One project described by the SAP_ADT_* environment variables."""

    def find_project(self) -> Optional[AdtProject]:
        if not SAP_ADT_URL:
            return None
        destination = Destination(
            id=SAP_ADT_DESTINATION or _destination_id_for(SAP_ADT_URL, SAP_ADT_CLIENT),
            url=SAP_ADT_URL,
            user=SAP_ADT_USER,
            password=SAP_ADT_PASSWORD,
            client=SAP_ADT_CLIENT,
            language=SAP_ADT_LANGUAGE,
            verify_tls=SAP_ADT_VERIFY_TLS,
        )
        return AdtProject(name=destination.id, destination=destination)


class WorkspaceFileDiscovery(ProjectDiscovery):
    """
    Projects listed in a JSON workspace file, re-read on every lookup::

        {"projects": [{"name": "DEV", "open": true,
                       "destination": {"id": "DEV_100", "url": "https://...",
                                       "user": "...", "password": "...",
                                       "client": "100", "language": "EN"}}]}

    The first open project that has a destination wins.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Optional[dict]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            raise WorkspaceError(f"Cannot read workspace file {self.path}: {e}") from e

    def find_project(self) -> Optional[AdtProject]:
        workspace = self._load()
        if not workspace:
            return None
        for entry in workspace.get("projects") or []:
            if not entry.get("open", True):
                continue
            dest = entry.get("destination")
            if not dest or not dest.get("url"):
                continue
            url = str(dest["url"]).rstrip("/")
            client = str(dest.get("client", ""))
            destination = Destination(
                id=str(dest.get("id") or _destination_id_for(url, client)),
                url=url,
                user=str(dest.get("user", "")),
                password=str(dest.get("password", "")),
                client=client,
                language=str(dest.get("language", "")),
                verify_tls=bool(dest.get("verify_tls", True)),
            )
            return AdtProject(name=str(entry.get("name") or destination.id), destination=destination)
        return None


def build_project_discovery() -> ProjectDiscovery:
    if ADT_WORKSPACE_FILE:
        logger.info(f"[Discovery] Using workspace file {ADT_WORKSPACE_FILE}")
        return WorkspaceFileDiscovery(ADT_WORKSPACE_FILE)
    logger.info("[Discovery] Using SAP_ADT_* environment variables")
    return EnvProjectDiscovery()
