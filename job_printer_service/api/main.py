"""
FastAPI application for the Job Printer Service.
Provides REST endpoints for health checks, service control, logs and test prints.
"""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import ServiceSettings
from ..log_buffer import MemoryLogHandler
from ..models import PrinterJob
from ..polling_service import PollingService
from ..printer_router import PrinterType
from ..slip_printer import SlipPrinter

logger = logging.getLogger(__name__)


# --- Pydantic Models for Request Bodies ---
class TestPrinterRequest(BaseModel):
    ip: Optional[str] = Field(None, description="Printer host or IP address.")
    port: Optional[Union[int, str]] = Field(None, description="Printer TCP port.")
    printerType: str = Field(PrinterType.THERMAL.value, description="Either 'slip' or 'thermal'.")


class SettingsRequest(BaseModel):
    PRINTER_API_URL: Optional[str] = Field(None, description="Job queue API base URL.")
    PRINTER_IP: Optional[str] = Field(None, description="Default thermal printer host.")
    PRINTER_PORT: Optional[Union[int, str]] = Field(None, description="Default thermal printer port.")
    POLL_INTERVAL_MS: Optional[int] = Field(None, description="Poll interval in milliseconds.")


# --- Dependencies ---
def get_polling_service(request: Request) -> PollingService:
    return request.app.state.polling_service


def get_thermal_printer(request: Request):
    return request.app.state.thermal_printer


def get_settings(request: Request) -> ServiceSettings:
    return request.app.state.settings


def get_log_handler(request: Request) -> Optional[MemoryLogHandler]:
    return request.app.state.log_handler


def settings_to_dict(settings: ServiceSettings) -> dict:
    return {
        'PRINTER_API_URL': settings.api_base_url,
        'PRINTER_IP': settings.printer_ip,
        'PRINTER_PORT': settings.printer_port,
        'POLL_INTERVAL_MS': int(round(settings.poll_interval * 1000)),
    }


def build_slip_test_html(ip: str, port: int) -> str:
    now = datetime.now().strftime('%d.%m.%Y %H:%M:%S')
    return f"""
        <div class="title">PRINTER TEST</div>
        <div class="order-info">
            <div class="info-line"><strong>Test Date:</strong> {now}</div>
        </div>
        <div class="divider"></div>
        <div class="item-row"><span>ITEM</span><span>QTY</span><span>TOTAL</span></div>
        <div class="item-row"><span>Test print</span><span>1</span><span>0</span></div>
        <div class="totals">
            <div class="total-row"><span>IP</span><span>{ip}</span></div>
            <div class="total-row"><span>Port</span><span>{port}</span></div>
        </div>
        <div class="divider"></div>
    """


def build_thermal_test_html(ip: str, port: int) -> str:
    now = datetime.now().strftime('%d.%m.%Y %H:%M:%S')
    return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="UTF-8"></head>
        <body>
            <div class="title">PRINTER TEST</div>
            <div class="order-info">
                <div class="info-line"><strong>Test Date:</strong> {now}</div>
                <div class="info-line"><strong>IP:</strong> {ip}</div>
                <div class="info-line"><strong>Port:</strong> {port}</div>
            </div>
            <div class="footer"><div class="footer-message">This is a test print</div></div>
        </body>
        </html>
    """


# --- FastAPI App Creation ---
def create_app(service: PollingService, thermal_printer, settings: Optional[ServiceSettings] = None,
               log_handler: Optional[MemoryLogHandler] = None, auto_start: Optional[bool] = None) -> FastAPI:
    """
    Create the API around already constructed service objects.

    Args:
        service: Polling service to control and report on
        thermal_printer: Thermal print path, used for thermal test prints
        settings: Service settings
        log_handler: In-memory log buffer served by /logs
        auto_start: Start the service on application startup; defaults to the settings
    """
    settings = settings or ServiceSettings()
    app = FastAPI(
        title="Job Printer Service",
        description="Delivers queued print jobs to thermal and slip printers",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.polling_service = service
    app.state.thermal_printer = thermal_printer
    app.state.settings = settings
    app.state.log_handler = log_handler

    should_auto_start = settings.auto_start if auto_start is None else auto_start

    @app.on_event("startup")
    async def startup_event():
        """Starts the polling service in the background."""
        logger.info("Application startup...")
        if should_auto_start:
            try:
                await asyncio.to_thread(service.start)
                logger.info("Polling service started automatically")
            except Exception as e:
                logger.error(f"Automatic service start failed: {e}", exc_info=True)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stops the polling service gracefully."""
        logger.info("Application shutdown...")
        if service.is_running:
            await asyncio.to_thread(service.stop)
        logger.info("Shutdown complete.")

    @app.get("/health", tags=["Monitoring"])
    def health_check(polling_service: PollingService = Depends(get_polling_service)):
        """Health check endpoint for monitoring."""
        try:
            status = polling_service.get_status()
            return {
                "status": "healthy",
                "timestamp": datetime.utcnow().isoformat(),
                "service": {
                    "isRunning": status.is_running,
                    "startedAt": status.started_at,
                    "totalJobsProcessed": status.total_jobs_processed,
                    "totalJobsFailed": status.total_jobs_failed,
                },
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "timestamp": datetime.utcnow().isoformat(),
                    "error": str(e),
                },
            )

    @app.get("/service/status", tags=["Service"])
    def service_status(polling_service: PollingService = Depends(get_polling_service)):
        return {"success": True, "data": polling_service.get_status().to_dict()}

    @app.post("/service/start", tags=["Service"])
    def start_service(polling_service: PollingService = Depends(get_polling_service)):
        if polling_service.is_running:
            return {"success": True, "message": "Service is already running"}
        try:
            polling_service.start()
        except Exception as e:
            logger.error(f"Service start failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        return {"success": True, "message": "Service started"}

    @app.post("/service/stop", tags=["Service"])
    def stop_service(polling_service: PollingService = Depends(get_polling_service)):
        if not polling_service.is_running:
            return {"success": True, "message": "Service is already stopped"}
        polling_service.stop()
        return {"success": True, "message": "Service stopped"}

    @app.get("/logs", tags=["Monitoring"])
    def get_logs(
        limit: Optional[int] = Query(None, ge=1),
        handler: Optional[MemoryLogHandler] = Depends(get_log_handler)
    ):
        if handler is None:
            return {"success": True, "data": []}
        return {"success": True, "data": handler.get_logs(limit)}

    @app.delete("/logs", tags=["Monitoring"])
    def clear_logs(handler: Optional[MemoryLogHandler] = Depends(get_log_handler)):
        if handler is not None:
            handler.clear()
        return {"success": True, "message": "Logs cleared"}

    @app.get("/settings", tags=["Settings"])
    def read_settings(service_settings: ServiceSettings = Depends(get_settings)):
        return {"success": True, "data": settings_to_dict(service_settings)}

    @app.put("/settings", tags=["Settings"])
    def update_settings(
        payload: SettingsRequest,
        request: Request,
        polling_service: PollingService = Depends(get_polling_service),
        printer=Depends(get_thermal_printer),
        service_settings: ServiceSettings = Depends(get_settings)
    ):
        """Applies new settings in memory and restarts a running service."""
        if not payload.PRINTER_API_URL or not payload.PRINTER_IP or payload.PRINTER_PORT in (None, ''):
            raise HTTPException(status_code=400, detail="All fields are required")
        try:
            port = int(payload.PRINTER_PORT)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Port number is not valid")
        if not 0 < port < 65536:
            raise HTTPException(status_code=400, detail="Port number is not valid")

        poll_interval = service_settings.poll_interval
        if payload.POLL_INTERVAL_MS is not None:
            poll_interval = payload.POLL_INTERVAL_MS / 1000.0
        try:
            new_settings = replace(
                service_settings,
                api_base_url=payload.PRINTER_API_URL.strip(),
                printer_ip=payload.PRINTER_IP.strip(),
                printer_port=port,
                poll_interval=poll_interval,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        was_running = polling_service.is_running
        printer.update_config(new_settings.printer_ip, new_settings.printer_port)
        request.app.state.settings = new_settings
        try:
            polling_service.update_config(
                poll_interval=new_settings.poll_interval,
                api_base_url=new_settings.api_base_url
            )
        except Exception as e:
            logger.error(f"Applying settings failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

        logger.info("Settings updated")
        return {"success": True, "message": "Settings saved", "needsRestart": was_running}

    @app.post("/test-printer", tags=["Printers"])
    def test_printer(
        payload: TestPrinterRequest,
        printer=Depends(get_thermal_printer),
        service_settings: ServiceSettings = Depends(get_settings)
    ):
        """Sends a test print to the given printer."""
        if not payload.ip or payload.port in (None, ''):
            raise HTTPException(status_code=400, detail="IP and port are required")
        try:
            port = int(payload.port)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Port number is not valid")
        if not 0 < port < 65536:
            raise HTTPException(status_code=400, detail="Port number is not valid")

        if payload.printerType == PrinterType.SLIP.value:
            slip_printer = SlipPrinter(
                payload.ip, port,
                connect_timeout=service_settings.slip_connect_timeout,
                read_timeout=service_settings.slip_read_timeout,
                byte_delay=service_settings.slip_byte_delay,
                settle_delay=service_settings.slip_settle_delay,
            )
            result = slip_printer.print_html(build_slip_test_html(payload.ip, port), 0)
        else:
            job = PrinterJob(
                auto_id=0,
                printer_name='Test Printer',
                alt_printer_name=f'{payload.ip}:{port}',
                content=build_thermal_test_html(payload.ip, port),
                external_notes='Test',
                reference_number='TEST',
            )
            result = printer.print_job(job)

        return {
            "success": result.success,
            "message": "Test print successful" if result.success else "Test print failed",
            "error": result.error,
        }

    return app
