"""Request dependencies resolving the services built in the app lifespan."""

from fastapi import Request

from spooltag.catalog.catalog import FilamentCatalog
from spooltag.crypto.cached_kdf import CachedKeyDerivation
from spooltag.interpreter.factory import InterpreterFactory


def get_key_derivation(request: Request) -> CachedKeyDerivation:
    return request.app.state.key_derivation


def get_catalog(request: Request) -> FilamentCatalog:
    return request.app.state.catalog


def get_interpreter_factory(request: Request) -> InterpreterFactory:
    return request.app.state.interpreter_factory
