"""lull — debounce bursts of events into single notifications.

Collects rapid triggers and, once they pause for a quiet period, runs a
handler once with everything that arrived. Triggers that land while the
handler is still running are coalesced into the next run.

Basic usage:

    from lull import Debouncer, DebounceConfig

    def handler(events, done):
        print(f"{len(events)} events")
        done()

    debouncer = Debouncer(handler, config=DebounceConfig(latency=0.5))
    debouncer.trigger("hello")
    debouncer.trigger("world")
    # ~0.5s later: "2 events"

Async handler usage:

    from lull import from_async

    @from_async
    async def handler(events):
        await notify(len(events))
"""

from lull._sync import SyncDebouncer
from lull.config import CommandConfig, DebounceConfig, OutputMode
from lull.core import Debouncer, State
from lull.errors import CommandError, CommandFailedError, CommandPipeError, LullError
from lull.handlers import CommandHandler, PrintHandler, from_async
from lull.pubsub import Event, PubSub
from lull.timer import Timer

__all__ = [
    "CommandConfig",
    "CommandError",
    "CommandFailedError",
    "CommandHandler",
    "CommandPipeError",
    "DebounceConfig",
    "Debouncer",
    "Event",
    "LullError",
    "OutputMode",
    "PrintHandler",
    "PubSub",
    "State",
    "SyncDebouncer",
    "Timer",
    "from_async",
]

__version__ = "0.1.0"
