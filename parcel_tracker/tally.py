"""Tally Prime integration.

Tally looks parcels up by LR number through the status-check endpoint in
``api.py``. This module formats the endpoint's answers and generates the
TDL add-on that calls it.
"""

from typing import Any, Optional

from .schemas import Parcel


TDL_FILENAME = "ParcelTracker.tdl"
CHECK_LR_PATH = "/api/tally/check-lr"
TEXT_NOT_FOUND = "NOT_RECEIVED|||"


def _plain_number(value: Any) -> str:
    """Render a number the way Tally expects: ``100`` not ``100.0``."""
    if not value:
        return "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_status_text(parcel: Optional[Parcel]) -> str:
    """Pipe separated answer: ``STATUS|TRANSPORT|WEIGHTkg|AMOUNT``."""
    if parcel is None:
        return TEXT_NOT_FOUND
    return (
        f"RECEIVED|{parcel.transport or 'Unknown'}"
        f"|{_plain_number(parcel.weight)}kg"
        f"|{_plain_number(parcel.total_amount)}"
    )


def format_status_json(parcel: Optional[Parcel]) -> dict[str, Any]:
    """JSON answer of the status-check endpoint."""
    if parcel is None:
        return {"found": False, "status": "not_received", "message": "Not Received"}
    return {
        "found": True,
        "status": "received",
        "message": "Received",
        "details": {
            "lrNumber": parcel.lr_number,
            "partyName": parcel.party_name,
            "transport": parcel.transport,
            "weight": parcel.weight,
            "totalAmount": parcel.total_amount,
        },
    }


TDL_TEMPLATE = """;; ============================================================
;; PARCEL TRACKER INTEGRATION FOR TALLY PRIME
;; Load via Help > TDL & Add-On > Manage Local TDLs
;; ============================================================

[System: Formula]
    ParcelTrackerURL : "__CHECK_URL__"
    PT_CheckLRNo     : ""
    PT_CheckStatus   : ""
    PT_CheckDetail   : ""

[System: UDF]
    SVTransportName : String : 2001
    SVLRNumber      : String : 2002
    SVTotalParcels  : Number : 2003
    SVParcelStatus  : String : 2004

;; ------------------------------------------------------------
;; Parcel section on the purchase voucher
;; ------------------------------------------------------------
[#Form: Purchase Color]
    Add : Part   : SVParcelInfoPart
    Add : Button : PT_VoucherButton

[Part: SVParcelInfoPart]
    Line   : SVP_TransportLine
    Line   : SVP_LRLine
    Line   : SVP_ParcelsLine
    Line   : SVP_StatusLine
    Border : Thin Box

[Line: SVP_TransportLine]
    Field  : SVP_TrPrompt
    Field  : SVP_TrField

[Field: SVP_TrPrompt]
    Use    : Short Prompt
    Set as : "Transport Name  :"

[Field: SVP_TrField]
    Use        : Name Field
    Storage    : SVTransportName
    Width      : 30
    Modifiable : Yes

[Line: SVP_LRLine]
    Field  : SVP_LRPrompt
    Field  : SVP_LRField

[Field: SVP_LRPrompt]
    Use    : Short Prompt
    Set as : "LR Number       :"

[Field: SVP_LRField]
    Use        : Name Field
    Storage    : SVLRNumber
    Width      : 20
    Modifiable : Yes
    On         : Accept : Call : Func_CheckLROnVoucher

[Line: SVP_ParcelsLine]
    Field  : SVP_ParcelsPrompt
    Field  : SVP_ParcelsField

[Field: SVP_ParcelsPrompt]
    Use    : Short Prompt
    Set as : "Total Parcels   :"

[Field: SVP_ParcelsField]
    Use        : Number Field
    Storage    : SVTotalParcels
    Width      : 10
    Modifiable : Yes

[Line: SVP_StatusLine]
    Field  : SVP_StatusPrompt
    Field  : SVP_StatusField

[Field: SVP_StatusPrompt]
    Use    : Short Prompt
    Set as : "Parcel Status   :"

[Field: SVP_StatusField]
    Use     : Name Field
    Storage : SVParcelStatus
    Width   : 40
    Skip    : Yes
    Style   : "Medium Bold"

[Function: Func_CheckLROnVoucher]
    Variable : vLR   : String
    Variable : vResp : String
    Variable : vStat : String
    Variable : vDet  : String
    Variable : vURL  : String

    10 : Set : vLR   : $SVLRNumber
    20 : If  : $$IsEmpty:##vLR
    30 :     Set : SVParcelStatus : "Enter LR Number first"
    40 :     Return
    50 : End If
    60 : Set : vURL  : @@ParcelTrackerURL + "&lr=" + ##vLR
    70 : Set : vResp : $$HTTP_GET:##vURL
    80 : If  : $$IsEmpty:##vResp
    90 :     Set : SVParcelStatus : "NOT RECEIVED - Server unreachable"
   100 :     Return
   110 : End If
   120 : Set : vStat : $$StrByChar:##vResp:0:$$StrFindChar:##vResp:"|"
   130 : Set : vDet  : $$StrByChar:##vResp:$$($$StrFindChar:##vResp:"|"+1):$$StrLen:##vResp
   140 : If  : ##vStat = "RECEIVED"
   150 :     Set : SVParcelStatus : "RECEIVED - " + ##vDet
   160 : Else
   170 :     Set : SVParcelStatus : "NOT RECEIVED"
   180 : End If
    Return

;; ------------------------------------------------------------
;; Standalone checker (Gateway menu and Ctrl+Alt+P)
;; ------------------------------------------------------------
[Key: PT_GlobalHotKey]
    Key    : Ctrl + Alt + P
    Action : Display : Rpt_ParcelChecker

[#Menu: Gateway of Tally]
    Add : Item : "Parcel Status Checker" : Display : Rpt_ParcelChecker

[Button: PT_VoucherButton]
    Title  : "Check Parcel"
    Key    : Ctrl + Alt + P
    Action : Display : Rpt_ParcelChecker

[Report: Rpt_ParcelChecker]
    Form   : Frm_ParcelChecker
    Title  : "Parcel Tracker - LR Status Checker"
    Auto   : Yes

[Form: Frm_ParcelChecker]
    Part   : PC_BodyPart
    Width  : 60
    Height : 20

[Part: PC_BodyPart]
    Line   : PC_InputLine
    Line   : PC_StatusLine
    Line   : PC_DetailLine
    Border : Thin Box

[Line: PC_InputLine]
    Field  : PC_LRPrompt
    Field  : PC_LRInput

[Field: PC_LRPrompt]
    Use    : Short Prompt
    Set as : "Enter LR Number :"

[Field: PC_LRInput]
    Use        : Name Field
    Width      : 30
    Modifiable : Yes
    Variable   : PT_CheckLRNo
    On         : Accept : Call : Func_StandaloneCheck

[Line: PC_StatusLine]
    Field  : PC_StatusPrompt
    Field  : PC_StatusDisplay

[Field: PC_StatusPrompt]
    Use    : Short Prompt
    Set as : "Status          :"

[Field: PC_StatusDisplay]
    Use      : Name Field
    Width    : 30
    Skip     : Yes
    Style    : "Large Bold"
    Variable : PT_CheckStatus

[Line: PC_DetailLine]
    Field  : PC_DetailPrompt
    Field  : PC_DetailDisplay

[Field: PC_DetailPrompt]
    Use    : Short Prompt
    Set as : "Details         :"

[Field: PC_DetailDisplay]
    Use      : Name Field
    Width    : 40
    Skip     : Yes
    Variable : PT_CheckDetail

[Function: Func_StandaloneCheck]
    Variable : vLR   : String
    Variable : vResp : String
    Variable : vStat : String
    Variable : vDet  : String
    Variable : vURL  : String

    10 : Set : vLR   : ##PT_CheckLRNo
    20 : If  : $$IsEmpty:##vLR
    30 :     Set : PT_CheckStatus : "Please enter an LR Number"
    40 :     Set : PT_CheckDetail : ""
    50 :     Return
    60 : End If
    70 : Set : vURL  : @@ParcelTrackerURL + "&lr=" + ##vLR
    80 : Set : vResp : $$HTTP_GET:##vURL
    90 : If  : $$IsEmpty:##vResp
   100 :     Set : PT_CheckStatus : "NOT RECEIVED"
   110 :     Set : PT_CheckDetail : "No response from server"
   120 :     Return
   130 : End If
   140 : Set : vStat : $$StrByChar:##vResp:0:$$StrFindChar:##vResp:"|"
   150 : Set : vDet  : $$StrByChar:##vResp:$$($$StrFindChar:##vResp:"|"+1):$$StrLen:##vResp
   160 : If  : ##vStat = "RECEIVED"
   170 :     Set : PT_CheckStatus : "RECEIVED"
   180 :     Set : PT_CheckDetail : ##vDet
   190 : Else
   200 :     Set : PT_CheckStatus : "NOT RECEIVED"
   210 :     Set : PT_CheckDetail : "LR not found in Parcel Tracker"
   220 : End If
    Return

;; ============================================================
;; END OF TDL - ParcelTracker
;; ============================================================
"""


def check_lr_url(api_url: str) -> str:
    """URL Tally calls; the LR number is appended as ``&lr=<LR>``."""
    return f"{api_url.rstrip('/')}{CHECK_LR_PATH}?format=text"


def build_tdl_script(api_url: str) -> str:
    """Generate the TDL add-on pointing at the public API URL.

    Args:
        api_url: Base URL under which ``api.py`` is served.

    Returns:
        The TDL source.
    """
    return TDL_TEMPLATE.replace("__CHECK_URL__", check_lr_url(api_url))
