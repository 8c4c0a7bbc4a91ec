"""HTTP API for the hold'em table service.

A small aiohttp application the front-end polls. Every state change goes
through the TableManager, which runs the engine on the server; clients only
ever see the public view of a table.
"""
import json
import logging
import time
from typing import Any, Dict

from aiohttp import web

from .config import Config
from .errors import (HoldemError, IllegalActionError, InvalidGameStateError, StaleStateError,
                     TableNotFoundError)
from .server_info import get_server_info
from .table_service import TableManager


def _error(status: int, message: str) -> web.Response:
    return web.json_response({'error': message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except TableNotFoundError as e:
        return _error(404, str(e))
    except StaleStateError as e:
        logging.info(f"{request.method} {request.path}: {e}")
        return _error(409, str(e))
    except (IllegalActionError, InvalidGameStateError, ValueError) as e:
        logging.info(f"{request.method} {request.path} rejected: {e}")
        return _error(400, str(e))
    except HoldemError as e:
        logging.warning(f"{request.method} {request.path} failed: {e}")
        return _error(400, str(e))
    except web.HTTPException:
        raise
    except Exception:
        logging.exception(f"Unhandled error in {request.method} {request.path}")
        return _error(500, 'Internal server error')


async def _read_json(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise InvalidGameStateError('Request body is not valid JSON')
    if not isinstance(body, dict):
        raise InvalidGameStateError('Request body must be a JSON object')
    return body


def _optional_int(body: Dict[str, Any], key: str):
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


class TableAPI:
    """Request handlers bound to one TableManager."""

    def __init__(self, manager: TableManager, config: Config):
        self.manager = manager
        self.config = config
        self.started_at = time.time()

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({'status': 'ok'})

    async def system_status(self, request: web.Request) -> web.Response:
        info = get_server_info(self.config)
        info['uptime_seconds'] = int(time.time() - self.started_at)
        info['database'] = self.manager.db.get_database_stats()
        return web.json_response(info)

    async def list_tables(self, request: web.Request) -> web.Response:
        status = request.query.get('status')
        return web.json_response({'tables': self.manager.list_tables(status)})

    async def create_table(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        table = await self.manager.create_table(
            name=body.get('name'),
            num_players=_optional_int(body, 'numPlayers'),
            small_blind=_optional_int(body, 'smallBlind'),
            big_blind=_optional_int(body, 'bigBlind'),
            starting_chips=_optional_int(body, 'startingChips'),
        )
        return web.json_response(table, status=201)

    async def get_table(self, request: web.Request) -> web.Response:
        table_id = request.match_info['table_id']
        viewer = request.query.get('playerId')
        return web.json_response(await self.manager.get_table(table_id, viewer))

    async def delete_table(self, request: web.Request) -> web.Response:
        await self.manager.delete_table(request.match_info['table_id'])
        return web.json_response({'deleted': True})

    async def start_hand(self, request: web.Request) -> web.Response:
        table = await self.manager.start_hand(request.match_info['table_id'])
        return web.json_response(table)

    async def submit_action(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        player_id = body.get('playerId')
        if player_id is None:
            raise IllegalActionError('playerId is required')
        payload = {'action': body.get('action'), 'amount': body.get('amount')}
        table = await self.manager.submit_action(request.match_info['table_id'], str(player_id), payload)
        return web.json_response(table)

    async def replace_game_state(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        state = body.get('gameState')
        if not isinstance(state, dict):
            raise InvalidGameStateError('gameState must be an object')
        version = _optional_int(body, 'version')
        if version is None:
            raise InvalidGameStateError('version is required')
        table = await self.manager.replace_game_state(request.match_info['table_id'], state, version)
        return web.json_response(table)

    async def list_actions(self, request: web.Request) -> web.Response:
        try:
            limit = int(request.query.get('limit', '50'))
        except ValueError:
            raise ValueError('limit must be an integer')
        actions = self.manager.get_actions(request.match_info['table_id'], limit)
        return web.json_response({'actions': actions})


def create_app(manager: TableManager, config: Config) -> web.Application:
    api = TableAPI(manager, config)
    app = web.Application(middlewares=[error_middleware])
    app.router.add_get('/health', api.health)
    app.router.add_get('/api/system/status', api.system_status)
    app.router.add_get('/api/tables', api.list_tables)
    app.router.add_post('/api/tables', api.create_table)
    app.router.add_get('/api/tables/{table_id}', api.get_table)
    app.router.add_delete('/api/tables/{table_id}', api.delete_table)
    app.router.add_post('/api/tables/{table_id}/hands', api.start_hand)
    app.router.add_post('/api/tables/{table_id}/actions', api.submit_action)
    app.router.add_get('/api/tables/{table_id}/actions', api.list_actions)
    app.router.add_patch('/api/tables/{table_id}/gamestate', api.replace_game_state)
    return app


async def start_api_server(manager: TableManager, config: Config) -> web.AppRunner:
    app = create_app(manager, config)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.host, port=config.port)
    await site.start()
    logging.info(f"Hold'em API listening on http://{config.host}:{config.port}")
    return runner
