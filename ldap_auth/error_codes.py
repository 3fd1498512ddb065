"""
Error codes handed to the login presentation layer.

Only the code strings are produced here; rendering them is up to the caller.
"""

from typing import Dict

WRONGUSERPASS = "WRONGUSERPASS"
RESETPASSWORD = "RESETPASSWORD"
RESETACCOUNT = "RESETACCOUNT"
LOGONRESTRICTION = "LOGONRESTRICTION"

TITLES: Dict[str, str] = {
    WRONGUSERPASS: "Incorrect Username or Password",
    RESETPASSWORD: "Password Reset Required",
    RESETACCOUNT: "Account Reset Required",
    LOGONRESTRICTION: "Logon Restriction Applied",
}

DESCRIPTIONS: Dict[str, str] = {
    WRONGUSERPASS: (
        "Either no user with the given username could be found, or the password "
        "you gave was wrong. Please check the username and try again."
    ),
    RESETPASSWORD: (
        "Your password has expired or needs to be reset. Please follow the instructions "
        "provided to reset your password and try again."
    ),
    RESETACCOUNT: (
        "Your account requires a full reset due to security policies or administrative action. "
        "Please contact support or follow the reset procedure."
    ),
    LOGONRESTRICTION: (
        "Your account is currently restricted from logging in due to security measures or "
        "policy enforcement. Please contact the administrator for assistance."
    ),
}


def get_title(code: str) -> str:
    """Return the title for an error code, falling back to the generic one."""
    return TITLES.get(code, TITLES[WRONGUSERPASS])


def get_description(code: str) -> str:
    """Return the description for an error code, falling back to the generic one."""
    return DESCRIPTIONS.get(code, DESCRIPTIONS[WRONGUSERPASS])
