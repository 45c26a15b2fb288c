from block_sampler.models.network import NetworkContext, NodeInfo, UnknownNodeError
from block_sampler.models.result import RunRequest, SamplingResult

__all__ = ["NetworkContext", "NodeInfo", "UnknownNodeError", "RunRequest", "SamplingResult"]
