from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel


class ChallengeRequest(BaseModel):
    """Request model for challenge generation - input validation"""

    walletAddress: Optional[str] = Field(default=None, description="Stellar wallet address (G... or M...)")


class ChallengeResponse(CustomBaseModel):
    """Response model for challenge generation - output"""

    success: bool = True
    challenge: str = ""
    message: str = "Challenge generated successfully"


class VerifyRequest(BaseModel):
    """Request model for /verify and /wallet-login - input validation"""

    walletAddress: Optional[str] = Field(default=None, description="Stellar wallet address")
    signature: Optional[str] = Field(
        default=None, description="Signed transaction envelope (base64 XDR) or a legacy signature"
    )
    challenge: Optional[str] = Field(default=None, description="Challenge returned by /challenge")
    signatureType: Optional[str] = Field(
        default=None, description='"envelope" or "legacy"; guessed from the signature when omitted'
    )


class UserInfo(CustomBaseModel):
    id: str = ""
    walletAddress: str = ""


class VerifyResponse(CustomBaseModel):
    """Response model for /verify - expiresIn is the token lifetime in seconds"""

    success: bool = True
    token: str
    expiresIn: str
    user: UserInfo


class WalletLoginResponse(CustomBaseModel):
    """Response model for /wallet-login - expiresIn is a duration such as "7d" """

    success: bool = True
    access_token: str
    expiresIn: str
    user: UserInfo


class ErrorResponse(CustomBaseModel):
    success: bool = False
    error: str = ""
