"""exprjson - Expression tree to JSON codec for Python 3.12+."""

from exprjson.catalog import (
    Catalog,
    ReflectionCatalog,
    constructor,
    indexer,
    member,
    method,
)
from exprjson.codecs import (
    TypeCodecs,
    ValueCodec,
    decode_value,
    encode_value,
)
from exprjson.decoder import Decoder
from exprjson.display import to_display
from exprjson.encoder import Encoder
from exprjson.errors import (
    AmbiguousSignatureError,
    ExpressionSerializationError,
    FormatError,
    ResolutionError,
    UnsupportedNodeError,
)
from exprjson.formats.json import (
    ExpressionConverter,
    ExpressionJSONEncoder,
)
from exprjson.interpreter import (
    Evaluator,
    Interpreter,
    evaluate,
)
from exprjson.members import (
    MemberInfo,
    MemberKind,
)
from exprjson.nodes import (
    Binary,
    Block,
    Conditional,
    Constant,
    DebugInfo,
    Default,
    Dynamic,
    Expression,
    ExpressionType,
    Goto,
    Index,
    Invocation,
    Label,
    Lambda,
    ListInit,
    Loop,
    MemberAccess,
    MemberInit,
    MethodCall,
    New,
    NewArray,
    Parameter,
    RuntimeVariables,
    Switch,
    Try,
    TypeBinary,
    Unary,
)
from exprjson.resolver import MetadataResolver
from exprjson.serialization import (
    ExpressionSerializer,
    from_dict,
    from_json,
    to_dict,
    to_json,
)
from exprjson.types import TypeRef

__all__ = [
    # Errors
    "AmbiguousSignatureError",
    # Nodes
    "Binary",
    "Block",
    # Metadata
    "Catalog",
    "Conditional",
    "Constant",
    "DebugInfo",
    # Codec
    "Decoder",
    "Default",
    "Dynamic",
    "Encoder",
    # Evaluation
    "Evaluator",
    "Expression",
    "ExpressionConverter",
    "ExpressionJSONEncoder",
    "ExpressionSerializationError",
    "ExpressionSerializer",
    "ExpressionType",
    "FormatError",
    "Goto",
    "Index",
    "Interpreter",
    "Invocation",
    "Label",
    "Lambda",
    "ListInit",
    "Loop",
    "MemberAccess",
    "MemberInfo",
    "MemberInit",
    "MemberKind",
    "MetadataResolver",
    "MethodCall",
    "New",
    "NewArray",
    "Parameter",
    "ReflectionCatalog",
    "ResolutionError",
    "RuntimeVariables",
    "Switch",
    "Try",
    "TypeBinary",
    # Value codec
    "TypeCodecs",
    "TypeRef",
    "Unary",
    "UnsupportedNodeError",
    "ValueCodec",
    "constructor",
    "decode_value",
    "encode_value",
    "evaluate",
    "from_dict",
    "from_json",
    "indexer",
    "member",
    "method",
    "to_dict",
    "to_display",
    "to_json",
]
