"""
User-facing message strings returned in response envelopes and errors.
"""

REGISTER_SUCCESS = "Register success"
LOGIN_SUCCESS = "Login success"
LOGOUT_SUCCESS = "Logout success"
REFRESH_TOKEN_SUCCESS = "Refresh token success"
RESEND_EMAIL_VERIFY_SUCCESS = "Resend email verify success"
EMAIL_VERIFY_SUCCESS = "Email verify success"
EMAIL_ALREADY_VERIFIED = "Email already verified"
CHECK_EMAIL_TO_RESET_PASSWORD = "Check email to reset password"
VERIFY_FORGOT_PASSWORD_SUCCESS = "Verify forgot password success"
RESET_PASSWORD_SUCCESS = "Reset password success"
GET_ME_SUCCESS = "Get my profile success"

EMAIL_ALREADY_EXISTS = "Email already exists"
EMAIL_OR_PASSWORD_INCORRECT = "Email or password is incorrect"
CONFIRM_PASSWORD_MISMATCH = "Confirm password must be the same as password"
USER_NOT_FOUND = "User not found"
USER_NOT_VERIFIED = "User not verified"
USER_BANNED = "User is banned"
USER_INACTIVE = "User account is inactive"
ADMIN_REQUIRED = "Admin role required"

ACCESS_TOKEN_REQUIRED = "Access token is required"
REFRESH_TOKEN_REQUIRED = "Refresh token is required"
REFRESH_TOKEN_NOT_FOUND = "Used refresh token or not exist"
VERIFY_EMAIL_TOKEN_REQUIRED = "Verify email token is required"
VERIFY_EMAIL_TOKEN_MISMATCH = "Verify email token is invalid"
FORGOT_PASSWORD_TOKEN_REQUIRED = "Forgot password token is required"
FORGOT_PASSWORD_TOKEN_MISMATCH = "Forgot password token is invalid"
TOKEN_INVALID = "Token is invalid"
TOKEN_EXPIRED = "Token is expired"
