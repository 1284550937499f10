# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from .loader import get_int_env, get_list_env, get_str_env
from .settings import ChatSettings

__all__ = ["ChatSettings", "get_int_env", "get_list_env", "get_str_env"]
