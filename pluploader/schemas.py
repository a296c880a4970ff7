from pydantic import BaseModel
from typing import Any, Dict, Optional

JSONRPC_VERSION = "2.0"

# JSON-RPC error codes carried in the body, independent of the HTTP status
ERROR_BAD_REQUEST = 400
ERROR_INPUT_STREAM = 101
ERROR_INTERNAL = 500

class AssembledFile(BaseModel):
    name: str
    data: bytes
    size: int
    type: str

class ChunkProgress(BaseModel):
    name: str
    chunk: int
    chunks: int
    received: int
    size: int

class RpcError(BaseModel):
    code: int
    message: str

class RpcResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[str] = None
    error: Optional[RpcError] = None

def rpc_result(id: Optional[str]) -> Dict[str, Any]:
    return RpcResponse(id=id).model_dump(exclude_none=True)

def rpc_error(id: Optional[str], code: int, message: str) -> Dict[str, Any]:
    return RpcResponse(id=id, error=RpcError(code=code, message=message)).model_dump()
