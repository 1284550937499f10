# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.loader import get_str_env
from src.server.session.dependencies import initialise_session_store, set_session_store
from src.server.session.router import router as session_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    session_store = initialise_session_store()
    await session_store.init()
    set_session_store(session_store)
    yield


app = FastAPI(
    title="Sorvx Chat API",
    description="Session persistence API for the Sorvx chat front-end",
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins_str = get_str_env("ALLOWED_ORIGINS", "http://localhost:3000")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",")]

logger.info("Allowed origins: %s", allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(session_router)
