"""Request-scoped accessors for the objects `create_app` puts on `app.state`."""

from fastapi import Depends, Request

from nl_files_api.adapters.storage import BaseStorage
from nl_files_api.dispatcher import CommandDispatcher
from nl_files_api.resolver import CommandResolver
from nl_files_api.settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> BaseStorage:
    return request.app.state.storage


def get_resolver(request: Request) -> CommandResolver:
    return request.app.state.resolver


def get_dispatcher(storage: BaseStorage = Depends(get_storage)) -> CommandDispatcher:
    return CommandDispatcher(storage)
