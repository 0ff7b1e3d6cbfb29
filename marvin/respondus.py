"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

respondus.py

WSGI middleware exposing the Respondus SOAP endpoint.

Requests under /api/respondus/soap are answered here when the plugin is
enabled; everything else goes to the wrapped application. The SOAP
router is only built on the first request that needs it, so processes
that never serve this endpoint never pay for it.

    app = RespondusSoapMiddleware(app)

A servant is any object whose methods implement the SOAP operations. Each
call receives the WSGI environ of the current request, followed by the
operation's parameters as keyword arguments. One servant serves every
thread, so it keeps no per-request state.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from lxml import etree

from marvin import __version__
from marvin.config_utils import get_config
from marvin.errors import MarvinError, SoapFault


logger = logging.getLogger(__name__)

ENDPOINT = re.compile(r"\A/api/respondus/soap")
SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
RESPONDUS_NS = "urn:RespondusAPI"
CONTENT_TYPE = "text/xml; charset=utf-8"


# ============================================================================
# Servant
# ============================================================================

class RespondusAPIPort:
    """Operations offered to Respondus clients."""

    OPERATIONS = ("IdentifyServer",)

    def IdentifyServer(self, environ: Dict[str, Any], **params: str) -> Dict[str, str]:
        return {
            "errorStatus": "Success",
            "serverName": "Marvin",
            "serverVersion": __version__,
            "serverHost": environ.get("HTTP_HOST", ""),
        }


# ============================================================================
# Router
# ============================================================================

class SoapRouter:
    """Dispatch SOAP 1.1 envelopes to servant methods."""

    def __init__(self, servant: Any, operations: Iterable[str]):
        self.servant = servant
        self.operations = set(operations)

    def handle(self, environ: Dict[str, Any], start_response: Callable) -> List[bytes]:
        try:
            body = self._read_body(environ)
            response = self.dispatch(body, environ)
            status = "200 OK"
        except SoapFault as fault:
            logger.warning("[respondus:warn] fault %s: %s", fault.fault_code, fault.message)
            response = self.fault_envelope(fault.fault_code, fault.message)
            status = "500 Internal Server Error"
        except MarvinError as e:
            logger.error("[respondus] %s", e.message)
            response = self.fault_envelope("soap:Server", e.message)
            status = "500 Internal Server Error"

        start_response(status, [
            ("Content-Type", CONTENT_TYPE),
            ("Content-Length", str(len(response))),
        ])
        return [response]

    def dispatch(self, body: bytes, environ: Dict[str, Any]) -> bytes:
        operation = self._operation_element(body)
        name = etree.QName(operation).localname
        if name not in self.operations:
            raise SoapFault(f"Unknown operation: {name}")

        params = {etree.QName(child).localname: (child.text or "") for child in operation
                  if isinstance(child.tag, str)}
        logger.info("[respondus] %s", name)
        result = getattr(self.servant, name)(environ, **params)
        return self.response_envelope(name, etree.QName(operation).namespace, result or {})

    def response_envelope(self, operation: str, namespace: Optional[str], result: Dict[str, Any]) -> bytes:
        envelope, body = self._envelope()
        ns = namespace or RESPONDUS_NS
        response = etree.SubElement(body, f"{{{ns}}}{operation}Response", nsmap={"tns": ns})
        for key, value in result.items():
            etree.SubElement(response, key).text = "" if value is None else str(value)
        return etree.tostring(envelope, xml_declaration=True, encoding="utf-8")

    def fault_envelope(self, code: str, message: str) -> bytes:
        envelope, body = self._envelope()
        fault = etree.SubElement(body, f"{{{SOAP_ENV_NS}}}Fault")
        etree.SubElement(fault, "faultcode").text = code
        etree.SubElement(fault, "faultstring").text = message
        return etree.tostring(envelope, xml_declaration=True, encoding="utf-8")

    def _envelope(self):
        envelope = etree.Element(f"{{{SOAP_ENV_NS}}}Envelope", nsmap={"soap": SOAP_ENV_NS})
        body = etree.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
        return envelope, body

    def _read_body(self, environ: Dict[str, Any]) -> bytes:
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        stream = environ.get("wsgi.input")
        if stream is None or length <= 0:
            raise SoapFault("Empty SOAP request")
        return stream.read(length)

    def _operation_element(self, body: bytes) -> etree._Element:
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(body, parser)
        except etree.XMLSyntaxError as e:
            raise SoapFault(f"Malformed SOAP envelope: {e}")
        if root.tag != f"{{{SOAP_ENV_NS}}}Envelope":
            raise SoapFault("Request is not a SOAP envelope")
        soap_body = root.find(f"{{{SOAP_ENV_NS}}}Body")
        operation = None
        if soap_body is not None:
            operation = next((el for el in soap_body if isinstance(el.tag, str)), None)
        if operation is None:
            raise SoapFault("SOAP body has no operation")
        return operation


# ============================================================================
# Middleware
# ============================================================================

def default_plugin_settings() -> Dict[str, str]:
    return {"enabled": "true" if get_config().respondus_enabled else "false"}


class RespondusSoapMiddleware:
    def __init__(
        self,
        app: Callable,
        plugin_settings: Callable[[], Dict[str, str]] = default_plugin_settings,
        servant_factory: Callable[[], Any] = RespondusAPIPort,
    ):
        self.app = app
        self.plugin_settings = plugin_settings
        self.servant_factory = servant_factory
        self.router: Optional[SoapRouter] = None
        self._setup_lock = threading.Lock()

    def plugin_enabled(self) -> bool:
        return self.plugin_settings().get("enabled") == "true"

    def setup(self) -> SoapRouter:
        if self.router is None:
            with self._setup_lock:
                if self.router is None:
                    servant = self.servant_factory()
                    operations = getattr(servant, "OPERATIONS", ())
                    logger.info("[respondus] building SOAP router (%d operations)", len(operations))
                    self.router = SoapRouter(servant, operations)
        return self.router

    def __call__(self, environ: Dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        if ENDPOINT.match(environ.get("PATH_INFO", "")) and self.plugin_enabled():
            return self.setup().handle(environ, start_response)
        return self.app(environ, start_response)
