"""Runtime modules package."""

from .base_module import BaseModule
from .logon_watcher import LogonFailureWatcher
