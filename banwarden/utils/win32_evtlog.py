"""Win32 EvtSubscribe wrapper — push subscription to a Windows event channel.

Uses ctypes to call the wevtapi EvtSubscribe API in signal mode. On hosts
without wevtapi, ``start()`` reports failure instead of raising.
"""

import asyncio
import ctypes
import ctypes.wintypes
import xml.etree.ElementTree as ET
from typing import Callable, Optional

from .logging import get_logger

logger = get_logger("utils.win32_evtlog")

EVT_SUBSCRIBE_TO_FUTURE = 1
EVT_RENDER_EVENT_XML = 1
WAIT_OBJECT_0 = 0
EVENT_NAMESPACE = 'xmlns="http://schemas.microsoft.com/win/2004/08/events/event"'

try:
    _wevtapi = ctypes.WinDLL("wevtapi", use_last_error=True)
    _kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    # Handles are pointer-sized; the default int restype truncates them on 64-bit
    _wevtapi.EvtSubscribe.restype = ctypes.c_void_p
    _wevtapi.EvtClose.argtypes = [ctypes.c_void_p]
    _kernel32.CreateEventW.restype = ctypes.c_void_p
    _kernel32.WaitForSingleObject.argtypes = [ctypes.c_void_p, ctypes.wintypes.DWORD]
    _kernel32.CloseHandle.argtypes = [ctypes.c_void_p]
    _WINDOWS = True
except (AttributeError, OSError):
    _wevtapi = None
    _kernel32 = None
    _WINDOWS = False


def is_available() -> bool:
    """Check if the EvtSubscribe API is available."""
    return _WINDOWS and _wevtapi is not None


def parse_event_xml(xml_str: str) -> Optional[dict]:
    """Parse rendered event XML into ``{event_id, timestamp, computer, channel, data}``.

    Returns None for anything that is not a well-formed event.
    """
    try:
        root = ET.fromstring(xml_str.replace(EVENT_NAMESPACE, ""))
    except ET.ParseError as e:
        logger.debug("evt_xml_parse_error", error=str(e))
        return None

    system = root.find("System")
    if system is None:
        return None

    event_id_elem = system.find("EventID")
    try:
        event_id = int(event_id_elem.text) if event_id_elem is not None and event_id_elem.text else 0
    except ValueError:
        event_id = 0

    time_elem = system.find("TimeCreated")
    computer_elem = system.find("Computer")
    channel_elem = system.find("Channel")

    event_data = {}
    event_data_elem = root.find("EventData")
    if event_data_elem is not None:
        for data_elem in event_data_elem.findall("Data"):
            name = data_elem.get("Name", "")
            if name:
                event_data[name] = data_elem.text or ""

    return {
        "event_id": event_id,
        "timestamp": time_elem.get("SystemTime", "") if time_elem is not None else "",
        "computer": computer_elem.text or "" if computer_elem is not None else "",
        "channel": channel_elem.text or "" if channel_elem is not None else "",
        "data": event_data,
    }


class EvtSubscription:
    """One EvtSubscribe channel subscription.

    New events are rendered to XML, parsed, and handed to ``callback`` from
    ``poll_loop`` running on the event loop.
    """

    def __init__(
        self,
        channel: str,
        query: str,
        callback: Callable[[dict], None],
    ):
        self._channel = channel
        self._query = query
        self._callback = callback
        self._handle = None
        self._signal_event = None
        self._running = False
        self._events_received: int = 0

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def events_received(self) -> int:
        return self._events_received

    def start(self) -> bool:
        """Start the subscription. Returns True on success."""
        if not is_available():
            logger.warning("evt_subscribe_not_windows")
            return False

        try:
            self._signal_event = _kernel32.CreateEventW(None, False, False, None)
            if not self._signal_event:
                logger.error("evt_create_event_failed")
                return False

            self._handle = _wevtapi.EvtSubscribe(
                None,           # Session (None = local)
                ctypes.c_void_p(self._signal_event),
                ctypes.c_wchar_p(self._channel),
                ctypes.c_wchar_p(self._query),
                None,           # Bookmark
                None,           # Context
                None,           # Callback (None = signal mode)
                EVT_SUBSCRIBE_TO_FUTURE,
            )
            if not self._handle:
                logger.error("evt_subscribe_failed", channel=self._channel, error=ctypes.get_last_error())
                self._close_handles()
                return False
        except OSError as e:
            logger.error("evt_subscribe_error", channel=self._channel, error=str(e))
            self._close_handles()
            return False

        self._running = True
        logger.info("evt_subscription_started", channel=self._channel, query=self._query)
        return True

    async def poll_loop(self) -> None:
        """Wait for the signal in an executor and dispatch pending events."""
        if not self._running or not self._handle:
            return

        loop = asyncio.get_event_loop()
        while self._running:
            try:
                signaled = await loop.run_in_executor(None, self._wait_for_signal, 1000)
                if not (signaled and self._running):
                    continue
                events = await loop.run_in_executor(None, self._read_events)
                for event_dict in events:
                    self._events_received += 1
                    try:
                        self._callback(event_dict)
                    except Exception as e:
                        logger.error("evt_callback_error", error=str(e))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("evt_poll_error", channel=self._channel, error=str(e))
                await asyncio.sleep(1)

    def _wait_for_signal(self, timeout_ms: int) -> bool:
        if not self._signal_event:
            return False
        return _kernel32.WaitForSingleObject(self._signal_event, timeout_ms) == WAIT_OBJECT_0

    def _read_events(self) -> list[dict]:
        events = []
        while self._handle:
            event_handle = ctypes.c_void_p()
            returned = ctypes.wintypes.DWORD()
            success = _wevtapi.EvtNext(
                ctypes.c_void_p(self._handle), 1, ctypes.byref(event_handle), 1000, 0, ctypes.byref(returned),
            )
            if not success or returned.value == 0:
                break

            xml_str = self._render_event_xml(event_handle)
            _wevtapi.EvtClose(event_handle)
            if xml_str:
                event_dict = parse_event_xml(xml_str)
                if event_dict:
                    events.append(event_dict)
        return events

    def _render_event_xml(self, event_handle) -> Optional[str]:
        buffer_used = ctypes.wintypes.DWORD(0)
        property_count = ctypes.wintypes.DWORD(0)

        # First call only reports the required buffer size
        _wevtapi.EvtRender(
            None, event_handle, EVT_RENDER_EVENT_XML, 0, None,
            ctypes.byref(buffer_used), ctypes.byref(property_count),
        )
        if buffer_used.value == 0:
            return None

        buf = ctypes.create_unicode_buffer(buffer_used.value)
        success = _wevtapi.EvtRender(
            None, event_handle, EVT_RENDER_EVENT_XML, buffer_used.value * 2, buf,
            ctypes.byref(buffer_used), ctypes.byref(property_count),
        )
        return buf.value if success else None

    def stop(self) -> None:
        """Stop the subscription and release handles."""
        self._running = False
        self._close_handles()
        logger.info("evt_subscription_stopped", channel=self._channel, events=self._events_received)

    def _close_handles(self) -> None:
        if self._handle:
            _wevtapi.EvtClose(self._handle)
            self._handle = None
        if self._signal_event:
            _kernel32.CloseHandle(self._signal_event)
            self._signal_event = None
