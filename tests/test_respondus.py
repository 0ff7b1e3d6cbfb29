# tests/test_respondus.py
"""
Tests for respondus.py - SOAP endpoint middleware
"""
import io

import pytest
from lxml import etree

from marvin import __version__
from marvin.respondus import (
    RESPONDUS_NS,
    SOAP_ENV_NS,
    RespondusAPIPort,
    RespondusSoapMiddleware,
    SoapRouter,
    default_plugin_settings,
)


IDENTIFY = f"""<?xml version="1.0" encoding="UTF-8"?>
<soap:Envelope xmlns:soap="{SOAP_ENV_NS}" xmlns:tns="{RESPONDUS_NS}">
  <soap:Body>
    <tns:IdentifyServer><userName>instructor</userName></tns:IdentifyServer>
  </soap:Body>
</soap:Envelope>
""".encode("utf-8")


def make_environ(path="/api/respondus/soap/v1", body=b"", host="lms.example.edu"):
    return {
        "PATH_INFO": path,
        "REQUEST_METHOD": "POST",
        "CONTENT_LENGTH": str(len(body)),
        "HTTP_HOST": host,
        "wsgi.input": io.BytesIO(body),
    }


class StartResponse:
    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers):
        self.status = status
        self.headers = dict(headers)


def downstream(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"app"]


def enabled():
    return {"enabled": "true"}


def disabled():
    return {"enabled": "false"}


def soap_body(response):
    return etree.fromstring(b"".join(response)).find(f"{{{SOAP_ENV_NS}}}Body")


class TestMiddleware:
    def test_identify_server(self):
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled)
        start_response = StartResponse()

        response = app(make_environ(body=IDENTIFY), start_response)

        assert start_response.status == "200 OK"
        assert start_response.headers["Content-Type"].startswith("text/xml")
        result = soap_body(response).find(f"{{{RESPONDUS_NS}}}IdentifyServerResponse")
        assert result.findtext("errorStatus") == "Success"
        assert result.findtext("serverName") == "Marvin"
        assert result.findtext("serverVersion") == __version__
        assert result.findtext("serverHost") == "lms.example.edu"

    def test_other_paths_pass_through(self):
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled)

        assert app(make_environ(path="/courses/1"), StartResponse()) == [b"app"]
        assert app.router is None

    def test_disabled_plugin_passes_through(self):
        app = RespondusSoapMiddleware(downstream, plugin_settings=disabled)

        assert app(make_environ(body=IDENTIFY), StartResponse()) == [b"app"]
        assert app.router is None

    def test_path_must_start_with_endpoint(self):
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled)

        assert app(make_environ(path="/x/api/respondus/soap"), StartResponse()) == [b"app"]

    def test_router_built_once(self, mocker):
        factory = mocker.Mock(wraps=RespondusAPIPort)
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled, servant_factory=factory)

        app(make_environ(body=IDENTIFY), StartResponse())
        router = app.router
        app(make_environ(body=IDENTIFY), StartResponse())

        factory.assert_called_once_with()
        assert app.router is router

    def test_servant_gets_each_requests_environ(self):
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled)

        first = app(make_environ(body=IDENTIFY, host="one.example.edu"), StartResponse())
        second = app(make_environ(body=IDENTIFY, host="two.example.edu"), StartResponse())

        hosts = [soap_body(r).find(f"{{{RESPONDUS_NS}}}IdentifyServerResponse").findtext("serverHost")
                 for r in (first, second)]
        assert hosts == ["one.example.edu", "two.example.edu"]
        assert not hasattr(app.router.servant, "environ")

    def test_environ_passed_to_custom_servant(self, mocker):
        servant = mocker.Mock(OPERATIONS=("IdentifyServer",))
        servant.IdentifyServer.return_value = {"errorStatus": "Success"}
        app = RespondusSoapMiddleware(downstream, plugin_settings=enabled, servant_factory=lambda: servant)
        environ = make_environ(body=IDENTIFY)

        app(environ, StartResponse())

        servant.IdentifyServer.assert_called_once_with(environ, userName="instructor")

    def test_settings_checked_per_request(self):
        state = {"enabled": "false"}
        app = RespondusSoapMiddleware(downstream, plugin_settings=lambda: state)

        assert app(make_environ(body=IDENTIFY), StartResponse()) == [b"app"]
        state["enabled"] = "true"
        assert app(make_environ(body=IDENTIFY), StartResponse()) != [b"app"]


class TestFaults:
    @pytest.fixture
    def router(self):
        return SoapRouter(RespondusAPIPort(), RespondusAPIPort.OPERATIONS)

    def _fault(self, router, body):
        start_response = StartResponse()
        response = router.handle(make_environ(body=body), start_response)
        assert start_response.status == "500 Internal Server Error"
        fault = soap_body(response).find(f"{{{SOAP_ENV_NS}}}Fault")
        return fault.findtext("faultcode"), fault.findtext("faultstring")

    def test_empty_request(self, router):
        assert self._fault(router, b"") == ("soap:Client", "Empty SOAP request")

    def test_unknown_operation(self, router):
        body = IDENTIFY.replace(b"IdentifyServer", b"DeleteEverything")

        assert self._fault(router, body) == ("soap:Client", "Unknown operation: DeleteEverything")

    def test_malformed_xml(self, router):
        code, message = self._fault(router, b"<soap:Envelope")

        assert code == "soap:Client"
        assert message.startswith("Malformed SOAP envelope")

    def test_not_an_envelope(self, router):
        assert self._fault(router, b"<hello/>") == ("soap:Client", "Request is not a SOAP envelope")


class TestDefaultPluginSettings:
    def test_reads_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert default_plugin_settings() == {"enabled": "false"}

        monkeypatch.setenv("MARVIN_RESPONDUS_ENABLED", "yes")
        assert default_plugin_settings() == {"enabled": "true"}
