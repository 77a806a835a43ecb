"""
Stateless proxy endpoints that keep the transit key and email credentials server-side.
"""

import json
import logging
from typing import Optional

import requests
from aiohttp import web

from .config import ApplicationConfig
from .errors import ConfigurationError, TransportError, UpstreamError, ValidationError
from .feedback import EmailRelay, validate_feedback_payload
from .http_session import AsyncRequestsSession

logger = logging.getLogger(__name__)

CORS_SETTINGS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
    'Access-Control-Allow-Headers': '*',
    'Access-Control-Max-Age': '3600',
}


def _json(payload, status: int = 200) -> web.Response:
    return web.json_response(payload, status=status, headers=CORS_SETTINGS)


class WebServer:
    """Feedback relay and transit proxy. Holds no per-request state."""

    def __init__(self, config: ApplicationConfig, http: Optional[AsyncRequestsSession] = None):
        self.config = config
        self.http = http or AsyncRequestsSession(timeout=config.request_timeout_seconds)
        self.email_relay = EmailRelay(self.http, config)

        self.app: Optional[web.Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

    def create_app(self) -> web.Application:
        """Create and configure the web application"""
        app = web.Application()

        app.router.add_route('OPTIONS', '/{tail:.*}', self._handle_options)
        app.router.add_route('*', '/api/send-feedback', self._handle_send_feedback)
        app.router.add_route('*', '/api/transit/{tail:.*}', self._handle_transit)

        return app

    async def _handle_options(self, request: web.Request) -> web.Response:
        """Handle OPTIONS preflight requests"""
        return web.Response(headers=CORS_SETTINGS)

    async def _handle_send_feedback(self, request: web.Request) -> web.Response:
        """POST /api/send-feedback - Relay a feedback report by email"""
        if request.method == 'OPTIONS':
            return await self._handle_options(request)
        if request.method != 'POST':
            return _json({"error": "Method not allowed"}, status=405)

        try:
            body = await request.json()
            template_params = validate_feedback_payload(body)
        except json.JSONDecodeError:
            return _json({"error": "Invalid JSON body"}, status=400)
        except ValidationError as e:
            return _json({"error": str(e)}, status=400)

        try:
            result = await self.email_relay.send(template_params)
        except ConfigurationError as e:
            logger.error(f"Feedback rejected: {e}")
            return _json({"error": str(e)}, status=500)
        except (UpstreamError, TransportError) as e:
            logger.warning(
                f"Email relay failed ({e}), feedback received: issue_type={template_params.get('issue_type')} "
                f"description={template_params.get('description')!r} "
                f"attachment={template_params.get('attachment_info', 'No attachment')}"
            )
            return _json({"success": True, "message": "Feedback received", "delivered": False})

        logger.info(f"Feedback relayed: issue_type={template_params.get('issue_type')}")
        return _json({"success": True, "message": "Feedback sent successfully", "response": result})

    async def _handle_transit(self, request: web.Request) -> web.Response:
        """ANY /api/transit/{tail} - Forward to the transit data provider with the API key"""
        if request.method == 'OPTIONS':
            return await self._handle_options(request)
        if not self.config.transit_api_key:
            logger.error("Transit proxy called without TRANSIT_API_KEY")
            return _json({"error": "Transit API key not configured"}, status=500)

        tail = request.match_info.get('tail', '')
        url = f"{self.config.transit_api_url.rstrip('/')}/{tail}"
        kwargs = {
            "params": list(request.query.items()),
            "headers": {"apiKey": self.config.transit_api_key, "Content-Type": "application/json"},
        }
        if request.method != 'GET' and request.can_read_body:
            kwargs["data"] = await request.read()

        try:
            response = await self.http.request(request.method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Error forwarding request to Transit API: {e}")
            return _json({"error": "Error forwarding request to Transit API"}, status=500)

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"Transit API returned non-JSON body for {tail} (HTTP {response.status_code})")
            return web.Response(status=response.status_code, text=response.text, headers=CORS_SETTINGS)

        return _json(payload, status=response.status_code)

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Start the web server"""
        host = host or self.config.host
        port = port or self.config.port
        logger.info(f"Starting web server on {host}:{port}")

        self.app = self.create_app()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, host, port)
        await self.site.start()

        logger.info(f"Web server started on {host}:{port}")

    async def stop(self) -> None:
        """Stop the web server gracefully"""
        logger.info("Stopping web server...")

        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        self.http.close()

        logger.info("Web server stopped")
