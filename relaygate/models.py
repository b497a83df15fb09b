from pydantic import BaseModel
from typing import Union

class RelayRequest(BaseModel):
    to: str
    message_type: Union[int, str]
    data: str = "0x"

class TransferOwnershipRequest(BaseModel):
    new_owner: str
