from __future__ import annotations

from typing import Callable

from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS

from kesimarket.client.http import ApiClient, Credentials, no_credentials

API_EXTENSION_KEY = "kesimarket_api"


class RemoteApi:
    """Binds one ApiClient (and its response cache) to each app."""

    def init_app(self, app: Flask, credentials: Callable[[], Credentials] = no_credentials) -> ApiClient:
        client = ApiClient.from_config(app.config, credentials=credentials)
        app.extensions[API_EXTENSION_KEY] = client
        return client

    @property
    def client(self) -> ApiClient:
        return current_app.extensions[API_EXTENSION_KEY]


# Singletons (initialized in app factory)
db = SQLAlchemy()
migrate = Migrate()
cors = CORS()
api = RemoteApi()
