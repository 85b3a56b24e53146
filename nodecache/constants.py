import os
from enum import Enum

from nodecache import logging_constants

# When resolving the config file:
PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))
RESOURCES_DIR = os.path.join(PROJECT_DIR, 'resources')
DEFAULT_CONFIG_PATH = os.path.join(RESOURCES_DIR, 'nodecache-default.cfg')
PROJECT_DIR_TOKEN = '$PROJECT_DIR'

# Key of the distinguished root entity which holds all top-level query fields:
ROOT_QUERY = 'ROOT_QUERY'

TYPENAME_KEY = '__typename'
ID_KEY = 'id'
REF_KEY = '__ref'

TYPENAME_QUERY = 'Query'
TYPENAME_NODE = 'Node'
TYPENAME_FILE = 'File'
TYPENAME_FOLDER = 'Folder'
TYPENAME_USER = 'User'

FIELD_CHILDREN = 'children'
FIELD_PARENT = 'parent'
FIELD_SHARES = 'shares'
FIELD_OWNER = 'owner'
FIELD_FIND_NODES = 'findNodes'
FIELD_GET_NODE = 'getNode'
FIELD_GET_PATH = 'getPath'
FIELD_GET_VERSIONS = 'getVersions'
FIELD_GET_LINKS = 'getLinks'
FIELD_GET_COLLABORATION_LINKS = 'getCollaborationLinks'

ARG_SORT = 'sort'
ARG_PAGE_TOKEN = 'page_token'
ARG_CURSOR = 'cursor'
ARG_LIMIT = 'limit'
ARG_NODE_ID = 'node_id'

FIND_NODES_KEY_ARGS = ['flagged', 'shared_with_me', 'shared_by_me', 'folder_id', 'cascade', 'keywords', 'sort']

# Abstract GraphQL types and the concrete types which implement them:
DEFAULT_POSSIBLE_TYPES = {
    TYPENAME_NODE: [TYPENAME_FILE, TYPENAME_FOLDER],
}

CFG_GC_AFTER_EVICT = 'cache.gc_after_evict'
CFG_ENABLE_FETCH_SEQUENCING = 'cache.enable_fetch_sequencing'


class NodeType(str, Enum):
    FOLDER = 'FOLDER'
    TEXT = 'TEXT'
    IMAGE = 'IMAGE'
    VIDEO = 'VIDEO'
    AUDIO = 'AUDIO'
    APPLICATION = 'APPLICATION'
    MESSAGE = 'MESSAGE'
    PRESENTATION = 'PRESENTATION'
    SPREADSHEET = 'SPREADSHEET'
    OTHER = 'OTHER'
    ROOT = 'ROOT'


class RootId(str, Enum):
    LOCAL_ROOT = 'LOCAL_ROOT'
    TRASH = 'TRASH_ROOT'
    SHARED_WITH_ME = 'SHARED_WITH_ME_ROOT'


TRACE_ENABLED = logging_constants.TRACE_ENABLED
SUPER_DEBUG_ENABLED = logging_constants.SUPER_DEBUG_ENABLED

# do not modify this behavior
if TRACE_ENABLED:
    SUPER_DEBUG_ENABLED = True
