"""
EM Manager

Per-simulation registry of the active transmitters and receivers. When a
device is activated, deactivated or retuned, the manager refreshes the
receivers' interactor lists so that each receiver knows which transmitters
can potentially be heard.

Linking rules (subject to passband overlap and Xmtr.allow_interaction_with):
    - comm transmitters -> comm and passive receivers
    - sensor transmitters -> passive receivers, and sensor receivers with
      no transmitter of their own (bistatic receive-only beams)
    - interferer transmitters -> every receiver

Passive receivers are also registered as emit listeners of the transmitters
they hear, and every linked receiver is a change listener of the
transmitter.

The indexes are plain lists guarded by a re-entrant lock; accessors return
copies so callers never hold an iterator across an activate/deactivate.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 24 (EW receivers)
"""

import logging
import threading
from typing import List

from emsim.em.types import RcvrFunction, XmtrFunction

logger = logging.getLogger(__name__)


def is_linkable(xmtr, rcvr) -> bool:
    """True if the functions of the pair allow an interaction."""
    if xmtr.function is XmtrFunction.INTERFERER:
        return True
    if rcvr.function is RcvrFunction.PASSIVE_SENSOR:
        return True
    if xmtr.function is XmtrFunction.COMM:
        return rcvr.function is RcvrFunction.COMM
    return rcvr.function is RcvrFunction.SENSOR and rcvr.linked_xmtr is None


class EMManager:
    """
    Registry of active transmitters and receivers.

    Attributes:
        name: Label used in log output
    """

    def __init__(self, name: str = "em_manager") -> None:
        self.name = name
        self._lock = threading.RLock()
        self._xmtrs: list = []
        self._rcvrs: list = []

    # -------------------------------------------------------------------------
    # Activation
    # -------------------------------------------------------------------------

    def activate_xmtr(self, xmtr) -> None:
        """Add a transmitter and link it to every compatible receiver."""
        with self._lock:
            xmtr.manager = self
            xmtr.active = True
            if xmtr in self._xmtrs:
                return
            self._xmtrs.append(xmtr)
            for rcvr in self._rcvrs:
                self._update_link(xmtr, rcvr)
        logger.debug("%s: activated transmitter %s", self.name, xmtr)

    def deactivate_xmtr(self, xmtr) -> None:
        """Remove a transmitter and unlink it from all receivers."""
        with self._lock:
            xmtr.active = False
            if xmtr not in self._xmtrs:
                return
            self._xmtrs.remove(xmtr)
            for rcvr in self._rcvrs:
                self._unlink(xmtr, rcvr)
        logger.debug("%s: deactivated transmitter %s", self.name, xmtr)

    def activate_rcvr(self, rcvr) -> None:
        """Add a receiver and link every compatible transmitter to it."""
        with self._lock:
            rcvr.manager = self
            rcvr.active = True
            if rcvr in self._rcvrs:
                return
            self._rcvrs.append(rcvr)
            for xmtr in self._xmtrs:
                self._update_link(xmtr, rcvr)
        logger.debug("%s: activated receiver %s", self.name, rcvr)

    def deactivate_rcvr(self, rcvr) -> None:
        with self._lock:
            rcvr.active = False
            if rcvr not in self._rcvrs:
                return
            self._rcvrs.remove(rcvr)
            for xmtr in self._xmtrs:
                self._unlink(xmtr, rcvr)
            rcvr.clear_interactors()
        logger.debug("%s: deactivated receiver %s", self.name, rcvr)

    # -------------------------------------------------------------------------
    # Parameter changes
    # -------------------------------------------------------------------------

    def update_xmtr(self, xmtr) -> None:
        """Relink a transmitter after a frequency or bandwidth change."""
        with self._lock:
            if xmtr not in self._xmtrs:
                return
            for rcvr in self._rcvrs:
                self._update_link(xmtr, rcvr)

    def update_rcvr(self, rcvr) -> None:
        """Relink a receiver after a frequency or bandwidth change."""
        with self._lock:
            if rcvr not in self._rcvrs:
                return
            for xmtr in self._xmtrs:
                self._update_link(xmtr, rcvr)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_xmtrs(self) -> List:
        with self._lock:
            return list(self._xmtrs)

    def get_rcvrs(self) -> List:
        with self._lock:
            return list(self._rcvrs)

    def get_xmtr_count(self) -> int:
        return len(self._xmtrs)

    def get_rcvr_count(self) -> int:
        return len(self._rcvrs)

    def get_xmtr_entry(self, index: int):
        with self._lock:
            return self._xmtrs[index]

    def get_rcvr_entry(self, index: int):
        with self._lock:
            return self._rcvrs[index]

    def clear(self) -> None:
        """Deactivate everything (end of simulation)."""
        for xmtr in self.get_xmtrs():
            self.deactivate_xmtr(xmtr)
        for rcvr in self.get_rcvrs():
            self.deactivate_rcvr(rcvr)

    # -------------------------------------------------------------------------
    # Linking
    # -------------------------------------------------------------------------

    def _update_link(self, xmtr, rcvr) -> None:
        if xmtr.antenna is not None and xmtr.antenna is rcvr.antenna and xmtr.linked_rcvr is rcvr:
            # A monostatic pair does not hear itself as an interactor.
            return
        if not is_linkable(xmtr, rcvr):
            return
        rcvr.update_interactions(xmtr)
        if xmtr in rcvr.get_interactors():
            if rcvr.function is RcvrFunction.PASSIVE_SENSOR:
                xmtr.add_listener(rcvr)
            xmtr.add_change_listener(rcvr)
        else:
            xmtr.remove_listener(rcvr)
            xmtr.remove_change_listener(rcvr)

    @staticmethod
    def _unlink(xmtr, rcvr) -> None:
        rcvr.remove_interactor(xmtr)
        xmtr.remove_listener(rcvr)
        xmtr.remove_change_listener(rcvr)
