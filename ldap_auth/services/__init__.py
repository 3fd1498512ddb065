from .attribute_merger import AttributeMerger, encode_binary
from .group_resolver import GroupResolutionState, GroupResolver

__all__ = ['AttributeMerger', 'GroupResolutionState', 'GroupResolver', 'encode_binary']
