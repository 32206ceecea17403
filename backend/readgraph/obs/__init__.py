"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from readgraph.obs import logging as obs_logging
from readgraph.obs import middleware
from readgraph.settings import settings

_initialised = False


def init(app: FastAPI) -> None:
	global _initialised
	if _initialised:
		return
	middleware.install(app)
	if settings.obs_enabled:
		obs_logging.configure_logging()
	_initialised = True


__all__ = ["init"]
