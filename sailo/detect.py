"""Project detection: existing Docker files, language and exposed ports."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

_EXPOSE = re.compile(r"^\s*EXPOSE\s+(.+)", re.IGNORECASE | re.ASCII)
_ENV_PORT = re.compile(r"^(?:PORT|.*_PORT)\s*=\s*(\d+)", re.ASCII)
_SCRIPT_PORT = re.compile(r"(?:--port|--PORT|-p)\s*[=\s]\s*(\d+)", re.ASCII)
_PORT_ENV_IN_SCRIPT = re.compile(r"PORT[=:]\s*(\d+)", re.ASCII)
_INTEGER = re.compile(r"[+-]?[0-9]+")

_COMPOSE_CANDIDATES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

_GO_IMAGE = "go" + "lang:1.22-bookworm"

# Marker file -> (language, default base image), checked in this order.
_LANGUAGES: dict[str, tuple[str, str]] = {
    "package.json": ("node", "node:22-slim"),
    "go.mod": ("go", _GO_IMAGE),
    "Cargo.toml": ("rust", "rust:1-slim-bookworm"),
    "requirements.txt": ("python", "python:3.12-slim"),
    "pyproject.toml": ("python", "python:3.12-slim"),
    "Gemfile": ("ruby", "ruby:3.3-slim"),
    "pom.xml": ("java", "eclipse-temurin:21-jdk"),
    "build.gradle": ("java", "eclipse-temurin:21-jdk"),
}
_FALLBACK_IMAGE = "ubuntu:24.04"


@dataclass
class DetectionResult:
    """What a project directory was found to contain."""

    dockerfile: str = ""
    docker_compose: str = ""
    dev_container: str = ""
    language: str = ""
    base_image: str = ""
    ports: list[int] = field(default_factory=list)


def _to_int(text: str) -> int | None:
    if not _INTEGER.fullmatch(text):
        return None
    return int(text)


def _is_valid_port(port: int) -> bool:
    return 1 <= port <= 65535


def parse_compose_port(value: Any) -> int:
    """Return the container port of a compose port spec, or 0.

    Accepts "3000", "3000:3000", "8080:3000/tcp" and plain integers.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        spec = value.split("/")[0]
        port = _to_int(spec.split(":")[-1])
        return 0 if port is None else port
    return 0


def port_summary(ports: Iterable[int]) -> str:
    """Return a human-readable list of ports."""
    text = ", ".join(str(port) for port in ports)
    return text or "none detected"


class Detector:
    """Scans a project directory to decide how to build its workspace."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def detect(self, project_dir) -> DetectionResult:
        """Scan project_dir and return what was found."""
        root = os.fspath(project_dir)
        result = DetectionResult()
        self._detect_dockerfile(root, result)
        self._detect_compose(root, result)
        self._detect_dev_container(root, result)
        self._detect_language(root, result)
        self._detect_ports(root, result)
        return result

    # --- Docker files --------------------------------------------------------

    def _detect_dockerfile(self, root: str, result: DetectionResult) -> None:
        path = os.path.join(root, "Dockerfile")
        if os.path.exists(path):
            result.dockerfile = path
            self._logger.debug("found Dockerfile: %s", path)

    def _detect_compose(self, root: str, result: DetectionResult) -> None:
        for name in _COMPOSE_CANDIDATES:
            path = os.path.join(root, name)
            if os.path.exists(path):
                result.docker_compose = path
                self._logger.debug("found Docker Compose: %s", path)
                return

    def _detect_dev_container(self, root: str, result: DetectionResult) -> None:
        path = os.path.join(root, ".devcontainer", "devcontainer.json")
        if os.path.exists(path):
            result.dev_container = path
            self._logger.debug("found devcontainer.json: %s", path)

    # --- language ------------------------------------------------------------

    def _detect_language(self, root: str, result: DetectionResult) -> None:
        for marker, (language, image) in _LANGUAGES.items():
            if os.path.exists(os.path.join(root, marker)):
                result.language = language
                if not result.base_image:
                    result.base_image = image
                self._logger.debug("detected language %s from %s", language, marker)
                return
        if not result.base_image:
            result.base_image = _FALLBACK_IMAGE

    # --- ports ---------------------------------------------------------------

    def _detect_ports(self, root: str, result: DetectionResult) -> None:
        seen: set[int] = set()
        seen.update(self._dockerfile_ports(result))
        seen.update(self._compose_ports(result))
        seen.update(self._package_json_ports(root))
        seen.update(self._env_ports(root))
        result.ports = sorted(seen)

    def _read_text(self, path: str, what: str) -> str | None:
        try:
            return Path(path).read_bytes().decode("utf-8", errors="replace")
        except OSError as exc:
            self._logger.debug("could not read %s for port detection: %s", what, exc)
            return None

    def _dockerfile_ports(self, result: DetectionResult):
        if not result.dockerfile:
            return
        text = self._read_text(result.dockerfile, "Dockerfile")
        if text is None:
            return
        for line in text.splitlines():
            match = _EXPOSE.match(line)
            if not match:
                continue
            for token in match.group(1).split():
                port = _to_int(token.split("/")[0])
                if port is not None and _is_valid_port(port):
                    yield port

    def _compose_ports(self, result: DetectionResult):
        if not result.docker_compose:
            return
        text = self._read_text(result.docker_compose, "compose file")
        if text is None:
            return
        try:
            compose = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            self._logger.debug("could not parse compose file: %s", exc)
            return
        if not isinstance(compose, dict):
            return
        services = compose.get("services")
        if not isinstance(services, dict):
            return
        for service in services.values():
            if not isinstance(service, dict):
                continue
            specs = service.get("ports")
            if not isinstance(specs, list):
                continue
            for spec in specs:
                port = parse_compose_port(spec)
                if port > 0 and _is_valid_port(port):
                    yield port

    def _package_json_ports(self, root: str):
        try:
            package = json.loads(Path(root, "package.json").read_bytes())
        except (OSError, ValueError):
            return
        if not isinstance(package, dict):
            return
        scripts = package.get("scripts")
        if not isinstance(scripts, dict):
            return
        for script in scripts.values():
            if not isinstance(script, str):
                continue
            for pattern in (_SCRIPT_PORT, _PORT_ENV_IN_SCRIPT):
                for digits in pattern.findall(script):
                    port = int(digits)
                    if _is_valid_port(port):
                        yield port

    def _env_ports(self, root: str):
        try:
            text = Path(root, ".env").read_bytes().decode("utf-8", errors="replace")
        except OSError:
            return
        for raw in text.splitlines():
            line = raw.strip()
            if line.startswith("#"):
                continue
            match = _ENV_PORT.match(line)
            if not match:
                continue
            port = int(match.group(1))
            if _is_valid_port(port):
                yield port