"""Public package exports."""

from quick_chain.cache import EvictionPolicy
from quick_chain.cache import ResultCache
from quick_chain.dispatcher import ErrorAwareDispatcher
from quick_chain.errors import ConstructionError
from quick_chain.errors import ProviderError
from quick_chain.input_adaptors import FileInput
from quick_chain.input_adaptors import InputAdaptor
from quick_chain.input_adaptors import TextInput
from quick_chain.orchestrator import Orchestrator
from quick_chain.providers import CompletionProvider
from quick_chain.providers import FunctionProvider
from quick_chain.run_control import CancelToken
from quick_chain.runners import ConditionalChainRunner
from quick_chain.runners import LinearChainRunner
from quick_chain.runners import ParallelChainRunner

__all__ = [
    "CancelToken",
    "CompletionProvider",
    "ConditionalChainRunner",
    "ConstructionError",
    "ErrorAwareDispatcher",
    "EvictionPolicy",
    "FileInput",
    "FunctionProvider",
    "InputAdaptor",
    "LinearChainRunner",
    "Orchestrator",
    "ParallelChainRunner",
    "ProviderError",
    "ResultCache",
    "TextInput",
]
