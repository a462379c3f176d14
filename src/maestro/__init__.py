"""maestro - an orchestrator/sub-agent loop that decomposes, executes and refines an objective."""

from .errors import ConfigError, MaestroError, ModelError, NoCredentialError, TranscriptError
from .models import Exchange, TerminationCause
from .orchestrator import RunLoop, run
from .transcript import RunTranscript, save_transcript

__version__ = "0.1.0"

__all__ = [
	"run",
	"RunLoop",
	"RunTranscript",
	"Exchange",
	"TerminationCause",
	"save_transcript",
	"MaestroError",
	"ModelError",
	"NoCredentialError",
	"ConfigError",
	"TranscriptError",
]
