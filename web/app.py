"""
Dead Drop Web API — aiohttp server.

Create drops, read public metadata, and retrieve files with a password.
CPU-heavy work (key derivation, embedding) runs in the default executor
so one slow request does not stall the event loop.

Author: Ava Shakil
Date: 2026-10-17
"""

import sys
import asyncio
import functools
import logging
from pathlib import Path

from aiohttp import web

# Ensure dead_drop is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import dead_drop
from dead_drop import DeadDropError, DropLifecycleStore, RetentionSweeper, Settings


logger = logging.getLogger(__name__)

STORE = web.AppKey('store', DropLifecycleStore)
SETTINGS = web.AppKey('settings', Settings)
SWEEPER = web.AppKey('sweeper', RetentionSweeper)


# ---------------------------------------------------------------------------
# API handlers
# ---------------------------------------------------------------------------

async def api_create(request: web.Request) -> web.Response:
    """
    POST /api/deaddrop
    Multipart form: file, password, password_hint?, ttl?, max_retrievals?,
                    burn_after_reading?, cover_image?, tags?, bits_per_channel?

    Returns: { codename, drop_id, expires_at, ttl, max_retrievals,
               burn_after_reading, steganography }
    """
    settings = request.app[SETTINGS]
    try:
        form = await request.post()
    except Exception:
        return _err("Invalid form body", 400)

    upload = form.get('file')
    password = form.get('password')
    if not isinstance(upload, web.FileField) or not password:
        return _err("File and password are required", 400)

    try:
        ttl = int(form.get('ttl') or settings.default_ttl)
        max_retrievals = int(form.get('max_retrievals') or 0)
        bits = int(form.get('bits_per_channel') or settings.bits_per_channel)
    except (ValueError, TypeError):
        return _err("ttl, max_retrievals and bits_per_channel must be integers", 400)

    if ttl <= 0:
        return _err("ttl must be positive", 400)
    if max_retrievals < 0:
        return _err("max_retrievals must be >= 0", 400)
    if not 1 <= bits <= 4:
        return _err("bits_per_channel must be between 1 and 4", 400)

    burn = str(form.get('burn_after_reading', 'false')).lower() == 'true'
    tags_raw = form.get('tags') or ''
    tags = [t.strip() for t in str(tags_raw).split(',') if t.strip()]

    cover_field = form.get('cover_image')
    cover_image = cover_field.file.read() if isinstance(cover_field, web.FileField) else None

    payload = upload.file.read()
    logger.info("Creating dead drop for %s (%d bytes)", upload.filename, len(payload))

    job = functools.partial(
        dead_drop.create,
        request.app[STORE],
        payload,
        str(password),
        cover_image=cover_image,
        bits_per_channel=bits,
        ttl=ttl,
        max_retrievals=max_retrievals,
        burn_after_reading=burn,
        password_hint=form.get('password_hint') or None,
        filename=upload.filename,
        mime_type=upload.content_type,
        tags=tags,
        ip_address=_client_ip(request),
        user_agent=request.headers.get('User-Agent'),
        iterations=settings.kdf_iterations,
    )

    try:
        _, report = await asyncio.get_running_loop().run_in_executor(None, job)
    except dead_drop.CapacityExceeded as exc:
        return web.json_response({
            "ok": False,
            "error": str(exc),
            "reason": exc.reason,
            "capacity": exc.capacity,
            "required": exc.required,
        }, status=400)
    except DeadDropError as exc:
        return _err(str(exc), exc.status, exc.reason)
    except Exception:
        logger.exception("Dead drop creation failed")
        return _err("Failed to create dead drop", 500)

    report["ok"] = True
    return web.json_response(report, status=201)


async def api_stats(request: web.Request) -> web.Response:
    """GET /api/deaddrop — counters for monitoring."""
    stats = request.app[STORE].stats()
    return web.json_response({"ok": True, "stats": stats})


async def api_metadata(request: web.Request) -> web.Response:
    """
    GET /api/deaddrop/{identifier}

    Public metadata only: no carrier image, no ciphertext.
    """
    identifier = request.match_info['identifier']
    try:
        info = dead_drop.describe(request.app[STORE], identifier)
    except DeadDropError as exc:
        return _err("Dead drop not accessible", exc.status, exc.reason)

    info["ok"] = True
    return web.json_response(info)


async def api_retrieve(request: web.Request) -> web.Response:
    """
    POST /api/deaddrop/{identifier}
    Body JSON: { password: str }

    Returns the decrypted file as an attachment.
    """
    identifier = request.match_info['identifier']
    try:
        data = await request.json()
    except Exception:
        return _err("Invalid JSON body", 400)

    password = data.get("password") if isinstance(data, dict) else None
    if not password:
        return _err("Password required", 401)

    job = functools.partial(
        dead_drop.retrieve,
        request.app[STORE],
        identifier,
        str(password),
        ip_address=_client_ip(request),
        user_agent=request.headers.get('User-Agent'),
    )
    try:
        payload, drop = await asyncio.get_running_loop().run_in_executor(None, job)
    except DeadDropError as exc:
        return _err("Failed to retrieve dead drop", exc.status, exc.reason)
    except Exception:
        logger.exception("Dead drop retrieval failed")
        return _err("Failed to retrieve dead drop", 500)

    filename = (drop.original_filename or 'download').replace('"', '')
    return web.Response(
        body=payload,
        content_type=drop.mime_type or 'application/octet-stream',
        headers={
            'Content-Disposition': f'attachment; filename="{filename}"',
            'X-Codename': drop.codename,
            'X-Retrieval-Count': str(drop.retrieval_count),
            'X-Max-Retrievals': str(drop.max_retrievals),
            'X-Burned': 'true' if drop.status == dead_drop.DropStatus.BURNED else 'false',
            'X-Steganography': 'LSB',
            'Cache-Control': 'no-store, no-cache, must-revalidate, private',
        },
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _err(msg: str, status: int = 400, reason: str = None) -> web.Response:
    body = {"ok": False, "error": msg}
    if reason:
        body["reason"] = reason
    return web.json_response(body, status=status)


def _client_ip(request: web.Request) -> str:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote or 'unknown'


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

async def _start_sweeper(app: web.Application) -> None:
    app[SWEEPER].start()


async def _stop_sweeper(app: web.Application) -> None:
    app[SWEEPER].stop()
    app[STORE].close()


def create_app(settings: Settings = None, store: DropLifecycleStore = None) -> web.Application:
    settings = settings or Settings.from_env()
    settings.validate()
    store = store or DropLifecycleStore(burn_grace_seconds=settings.burn_grace_seconds)

    app = web.Application(client_max_size=settings.max_upload_bytes)
    app[SETTINGS] = settings
    app[STORE] = store
    app[SWEEPER] = RetentionSweeper(store, interval=settings.sweep_interval)

    app.router.add_post("/api/deaddrop", api_create)
    app.router.add_get("/api/deaddrop", api_stats)
    app.router.add_get("/api/deaddrop/{identifier}", api_metadata)
    app.router.add_post("/api/deaddrop/{identifier}", api_retrieve)

    app.on_startup.append(_start_sweeper)
    app.on_cleanup.append(_stop_sweeper)
    return app


def run(settings: Settings = None) -> None:
    settings = settings or Settings.from_env()
    dead_drop.configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info("Dead Drop API on http://%s:%d", settings.host, settings.port)
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
