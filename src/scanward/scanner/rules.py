"""SAST rule catalog and per-extension applicability."""

from __future__ import annotations

import re
from pathlib import Path

from scanward.scanner.models import Category, SecurityRule, Severity

_I = re.IGNORECASE

SAST_RULES: list[SecurityRule] = [
    SecurityRule(
        id="SQL_INJECTION",
        name="SQL Injection Vulnerability",
        description="Potential SQL injection vulnerability detected",
        severity=Severity.CRITICAL,
        cwe="CWE-89",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"SELECT.*FROM.*WHERE.*[+=]\s*['\"][^'\"]*\s*\+\s*\w+"
            r"|execute\s*\([^)]*[+=]\s*['\"][^'\"]*\s*\+\s*\w+\)",
            _I,
        ),
        remediation=(
            "Use parameterized queries or prepared statements instead of "
            "string concatenation"
        ),
        confidence=0.9,
        tags=("injection", "database"),
    ),
    SecurityRule(
        id="XSS_VULNERABILITY",
        name="Cross-Site Scripting (XSS)",
        description="Potential XSS vulnerability in user input handling",
        severity=Severity.HIGH,
        cwe="CWE-79",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"(innerHTML|outerHTML|document\.write)\s*=\s*\w+"
            r"|getElementById\s*\([^)]*\)\.innerHTML\s*=",
            _I,
        ),
        remediation="Use textContent or properly sanitize HTML input",
        confidence=0.8,
        tags=("xss", "injection", "web"),
    ),
    SecurityRule(
        id="COMMAND_INJECTION",
        name="Command Injection",
        description="Potential command injection vulnerability",
        severity=Severity.CRITICAL,
        cwe="CWE-78",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"exec\s*\(\s*['\"].*['\"]\s*\+\s*\w+"
            r"|spawn\s*\(\s*\w+"
            r"|system\s*\(\s*['\"].*['\"]\s*\+",
            _I,
        ),
        remediation="Validate and sanitize input, use safe APIs",
        confidence=0.9,
        tags=("injection", "command", "execution"),
    ),
    SecurityRule(
        id="PATH_TRAVERSAL",
        name="Path Traversal",
        description="Potential path traversal vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-22",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(r"\.\.[/\\]|\.\.%2f|\.\.%5c", _I),
        remediation="Validate file paths and resolve them against an allowed root",
        confidence=0.7,
        tags=("traversal", "filesystem", "access-control"),
    ),
    SecurityRule(
        id="INSECURE_RANDOM",
        name="Insecure Random Number Generation",
        description="Use of insecure random number generation",
        severity=Severity.MEDIUM,
        cwe="CWE-338",
        owasp="A02:2021-Cryptographic Failures",
        pattern=re.compile(r"\bMath\.random\(\)", _I),
        remediation=(
            "Use crypto.randomBytes() or crypto.randomInt() for secure random "
            "generation"
        ),
        confidence=0.6,
        tags=("crypto", "random", "weak"),
    ),
    SecurityRule(
        id="WEAK_CRYPTO",
        name="Weak Cryptographic Algorithm",
        description="Use of weak cryptographic algorithms",
        severity=Severity.MEDIUM,
        cwe="CWE-327",
        owasp="A02:2021-Cryptographic Failures",
        pattern=re.compile(r"\b(md5|sha1)\s*\(", _I),
        remediation="Use strong cryptographic algorithms like SHA-256, AES-256",
        confidence=0.8,
        tags=("crypto", "weak", "hash"),
    ),
    SecurityRule(
        id="MISSING_VALIDATION",
        name="Missing Input Validation",
        description="Potential missing input validation",
        severity=Severity.MEDIUM,
        cwe="CWE-20",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"\b(req\.body|req\.query|req\.params)\s*\[\s*['\"][^'\"]*['\"]\s*\]",
            _I,
        ),
        remediation="Add proper input validation and sanitization",
        confidence=0.5,
        tags=("validation", "input", "web"),
    ),
    SecurityRule(
        id="INSECURE_DESERIALIZATION",
        name="Insecure Deserialization",
        description="Potential insecure deserialization vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-502",
        owasp="A08:2021-Software and Data Integrity Failures",
        pattern=re.compile(
            r"(JSON\.parse|eval|Function|setTimeout|setInterval)\s*\(\s*\w+\s*\)",
            _I,
        ),
        remediation="Validate and sanitize input before deserialization",
        confidence=0.6,
        tags=("deserialization", "execution", "injection"),
    ),
    SecurityRule(
        id="LDAP_INJECTION",
        name="LDAP Injection",
        description="Potential LDAP injection vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-90",
        owasp="A03:2021-Injection",
        pattern=re.compile(r"ldap.*search.*\+.*\w+|ldap.*filter.*\+.*\w+", _I),
        remediation="Use parameterized LDAP queries and input validation",
        confidence=0.8,
        tags=("injection", "ldap", "authentication"),
    ),
    SecurityRule(
        id="XXE_INJECTION",
        name="XML External Entity (XXE) Injection",
        description="Potential XXE injection vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-611",
        owasp="A05:2021-Security Misconfiguration",
        pattern=re.compile(r"<!ENTITY.*SYSTEM|<!DOCTYPE.*\[.*<!ENTITY", _I),
        remediation="Disable external entity processing in XML parsers",
        confidence=0.9,
        tags=("xxe", "xml", "injection"),
    ),
    # OWASP Top 10 2021
    SecurityRule(
        id="BROKEN_ACCESS_CONTROL",
        name="Broken Access Control",
        description="Potential broken access control - missing authorization checks",
        severity=Severity.HIGH,
        cwe="CWE-862",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(route|endpoint|handler).*\.(get|post|put|delete)"
            r"(?!.*\b(auth|authorize|permission|role)\b)",
            _I,
        ),
        remediation="Implement proper authorization checks before accessing resources",
        confidence=0.5,
        tags=("access-control", "authorization", "owasp-top10"),
    ),
    SecurityRule(
        id="WEAK_ENCRYPTION",
        name="Weak Encryption Algorithm",
        description="Use of weak encryption algorithms",
        severity=Severity.HIGH,
        cwe="CWE-327",
        owasp="A02:2021-Cryptographic Failures",
        pattern=re.compile(r"\b(DES|3DES|RC4|RC2)\b", _I),
        remediation="Use AES-256 or other strong encryption algorithms",
        confidence=0.9,
        tags=("crypto", "weak-encryption", "owasp-top10"),
    ),
    SecurityRule(
        id="HARDCODED_CRYPTO_KEY",
        name="Hardcoded Cryptographic Key",
        description="Cryptographic key hardcoded in source code",
        severity=Severity.CRITICAL,
        cwe="CWE-798",
        owasp="A02:2021-Cryptographic Failures",
        pattern=re.compile(
            r"(encrypt|decrypt|cipher|key)\s*[:=]\s*['\"][^'\"]{16,}['\"]", _I
        ),
        remediation="Store cryptographic keys in secure key management systems",
        confidence=0.7,
        tags=("crypto", "hardcoded-key", "owasp-top10"),
    ),
    SecurityRule(
        id="NOSQL_INJECTION",
        name="NoSQL Injection",
        description="Potential NoSQL injection vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-943",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"\$where.*\+.*\w+|find\s*\(\s*{.*\+.*}|eval\s*\(.*\+.*\)", _I
        ),
        remediation="Use parameterized queries and validate input for NoSQL operations",
        confidence=0.8,
        tags=("nosql", "injection", "database", "owasp-top10"),
    ),
    SecurityRule(
        id="OS_COMMAND_INJECTION",
        name="OS Command Injection",
        description="Operating system command injection vulnerability",
        severity=Severity.CRITICAL,
        cwe="CWE-78",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"(exec|system|spawn|popen|subprocess)\s*\(\s*['\"].*['\"]\s*\+\s*\w+",
            _I,
        ),
        remediation="Use safe APIs and validate/sanitize all user input",
        confidence=0.9,
        tags=("command-injection", "os", "owasp-top10"),
    ),
    SecurityRule(
        id="MISSING_RATE_LIMITING",
        name="Missing Rate Limiting",
        description="API endpoint without rate limiting implementation",
        severity=Severity.MEDIUM,
        cwe="CWE-770",
        owasp="A04:2021-Insecure Design",
        pattern=re.compile(
            r"(app\.(get|post|put|delete)|router\.(get|post|put|delete))"
            r"(?!.*\b(rateLimit|throttle|limit)\b)",
            _I,
        ),
        remediation="Implement rate limiting to prevent abuse",
        confidence=0.4,
        tags=("rate-limiting", "dos", "owasp-top10"),
    ),
    SecurityRule(
        id="INSUFFICIENT_LOGGING",
        name="Insufficient Security Logging",
        description="Security events not properly logged",
        severity=Severity.MEDIUM,
        cwe="CWE-778",
        owasp="A09:2021-Security Logging and Monitoring Failures",
        pattern=re.compile(
            r"(login|authentication|authorization|access.*denied)"
            r"(?!.*\b(log|audit|record)\b)",
            _I,
        ),
        remediation="Implement comprehensive security event logging",
        confidence=0.3,
        tags=("logging", "monitoring", "owasp-top10"),
    ),
    SecurityRule(
        id="DEBUG_MODE_ENABLED",
        name="Debug Mode Enabled",
        description="Debug mode enabled in production code",
        severity=Severity.MEDIUM,
        cwe="CWE-489",
        owasp="A05:2021-Security Misconfiguration",
        pattern=re.compile(
            r"(debug\s*[:=]\s*true|DEBUG\s*[:=]\s*true|NODE_ENV.*development)", _I
        ),
        remediation="Disable debug mode in production environments",
        confidence=0.8,
        tags=("debug", "configuration", "owasp-top10"),
    ),
    SecurityRule(
        id="CORS_MISCONFIGURATION",
        name="CORS Misconfiguration",
        description="Potentially insecure CORS configuration",
        severity=Severity.MEDIUM,
        cwe="CWE-346",
        owasp="A05:2021-Security Misconfiguration",
        pattern=re.compile(
            r"(Access-Control-Allow-Origin\s*:\s*\*|cors.*origin.*\*)", _I
        ),
        remediation="Configure CORS with specific allowed origins",
        confidence=0.7,
        tags=("cors", "configuration", "owasp-top10"),
    ),
    SecurityRule(
        id="DEPRECATED_FUNCTION",
        name="Deprecated Function Usage",
        description="Usage of deprecated functions that may have security issues",
        severity=Severity.MEDIUM,
        cwe="CWE-477",
        owasp="A06:2021-Vulnerable and Outdated Components",
        pattern=re.compile(
            r"\b(eval|unescape|escape|document\.write|innerHTML)\s*\(", _I
        ),
        remediation="Replace deprecated functions with secure alternatives",
        confidence=0.6,
        tags=("deprecated", "legacy", "owasp-top10"),
    ),
    SecurityRule(
        id="WEAK_SESSION_CONFIG",
        name="Weak Session Configuration",
        description="Insecure session configuration detected",
        severity=Severity.HIGH,
        cwe="CWE-384",
        owasp="A07:2021-Identification and Authentication Failures",
        pattern=re.compile(
            r"(session.*secure\s*:\s*false|session.*httpOnly\s*:\s*false)", _I
        ),
        remediation="Configure sessions with secure and httpOnly flags",
        confidence=0.8,
        tags=("session", "authentication", "owasp-top10"),
    ),
    SecurityRule(
        id="MISSING_PASSWORD_POLICY",
        name="Missing Password Policy",
        description="Password validation without proper complexity requirements",
        severity=Severity.MEDIUM,
        cwe="CWE-521",
        owasp="A07:2021-Identification and Authentication Failures",
        pattern=re.compile(
            r"password.*validate"
            r"(?!.*\b(length|complexity|special|number|uppercase)\b)",
            _I,
        ),
        remediation="Implement strong password policy validation",
        confidence=0.5,
        tags=("password", "authentication", "owasp-top10"),
    ),
    SecurityRule(
        id="UNSIGNED_CODE_EXECUTION",
        name="Unsigned Code Execution",
        description="Execution of unsigned or unverified code",
        severity=Severity.HIGH,
        cwe="CWE-494",
        owasp="A08:2021-Software and Data Integrity Failures",
        pattern=re.compile(
            r"(eval|Function|setTimeout|setInterval)\s*\(\s*[^)]*\+[^)]*\)", _I
        ),
        remediation="Validate and verify code integrity before execution",
        confidence=0.8,
        tags=("code-execution", "integrity", "owasp-top10"),
    ),
    SecurityRule(
        id="SENSITIVE_DATA_LOGGED",
        name="Sensitive Data in Logs",
        description="Sensitive information potentially logged",
        severity=Severity.MEDIUM,
        cwe="CWE-532",
        owasp="A09:2021-Security Logging and Monitoring Failures",
        pattern=re.compile(
            r"log.*\b(password|token|secret|key|credit.*card|ssn)\b", _I
        ),
        remediation="Remove sensitive data from log statements",
        confidence=0.7,
        tags=("logging", "sensitive-data", "owasp-top10"),
    ),
    SecurityRule(
        id="SSRF_VULNERABILITY",
        name="Server-Side Request Forgery (SSRF)",
        description="Potential SSRF vulnerability in HTTP requests",
        severity=Severity.HIGH,
        cwe="CWE-918",
        owasp="A10:2021-Server-Side Request Forgery (SSRF)",
        pattern=re.compile(r"(http\.|fetch|axios|request)\s*\(\s*[^)]*\+[^)]*", _I),
        remediation="Validate and allow-list URLs before making requests",
        confidence=0.6,
        tags=("ssrf", "http", "owasp-top10"),
    ),
    # CWE Top 25 2023
    SecurityRule(
        id="DOM_XSS",
        name="DOM-based Cross-Site Scripting",
        description="DOM-based XSS vulnerability detected",
        severity=Severity.HIGH,
        cwe="CWE-79",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"(location\.hash|location\.search|window\.name|document\.referrer)"
            r".*innerHTML",
            _I,
        ),
        remediation="Sanitize DOM sources before using in innerHTML or other DOM sinks",
        confidence=0.9,
        tags=("xss", "dom", "cwe-top25"),
    ),
    SecurityRule(
        id="IMPROPER_INPUT_VALIDATION",
        name="Improper Input Validation",
        description="Input validation bypass or insufficient validation",
        severity=Severity.HIGH,
        cwe="CWE-20",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"\b(req\.(body|query|params)|input|userInput)"
            r"(?!.*\b(validate|sanitize|escape|check)\b)",
            _I,
        ),
        remediation="Implement comprehensive input validation and sanitization",
        confidence=0.4,
        tags=("input-validation", "sanitization", "cwe-top25"),
    ),
    SecurityRule(
        id="BUFFER_OVERFLOW_READ",
        name="Potential Buffer Over-read",
        description="Array or buffer access without bounds checking",
        severity=Severity.HIGH,
        cwe="CWE-125",
        owasp="A06:2021-Vulnerable and Outdated Components",
        pattern=re.compile(r"\[[^\]]*\+[^\]]*\](?!.*\b(length|bounds|check)\b)", _I),
        remediation="Add bounds checking before array/buffer access",
        confidence=0.5,
        tags=("buffer", "bounds-check", "cwe-top25"),
    ),
    SecurityRule(
        id="BUFFER_OVERFLOW_WRITE",
        name="Potential Buffer Overflow Write",
        description="Buffer write operation without bounds checking",
        severity=Severity.CRITICAL,
        cwe="CWE-787",
        owasp="A06:2021-Vulnerable and Outdated Components",
        pattern=re.compile(
            r"(strcpy|strcat|sprintf|memcpy)(?!.*\b(bounds|size|limit)\b)", _I
        ),
        remediation="Use safe string functions and bounds checking",
        confidence=0.8,
        tags=("buffer-overflow", "memory", "cwe-top25"),
    ),
    SecurityRule(
        id="PATH_INJECTION",
        name="Path Injection",
        description="Unsanitized path construction vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-22",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(path\.join|fs\.(readFile|writeFile|unlink)|require)\s*\([^)]*\+[^)]*",
            _I,
        ),
        remediation="Sanitize and validate file paths, use path.resolve securely",
        confidence=0.7,
        tags=("path-injection", "filesystem", "cwe-top25"),
    ),
    SecurityRule(
        id="CSRF_VULNERABILITY",
        name="Cross-Site Request Forgery (CSRF)",
        description="Missing CSRF protection on state-changing operations",
        severity=Severity.MEDIUM,
        cwe="CWE-352",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(app\.(post|put|delete)|router\.(post|put|delete))"
            r"(?!.*\b(csrf|token|authenticity)\b)",
            _I,
        ),
        remediation="Implement CSRF tokens for state-changing operations",
        confidence=0.4,
        tags=("csrf", "state-change", "cwe-top25"),
    ),
    SecurityRule(
        id="UNRESTRICTED_FILE_UPLOAD",
        name="Unrestricted File Upload",
        description="File upload without proper type validation",
        severity=Severity.HIGH,
        cwe="CWE-434",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(upload|multer|formidable)"
            r"(?!.*\b(fileFilter|mimetype|extension|whitelist)\b)",
            _I,
        ),
        remediation="Implement file type validation and content verification",
        confidence=0.6,
        tags=("file-upload", "validation", "cwe-top25"),
    ),
    SecurityRule(
        id="CODE_INJECTION_DYNAMIC",
        name="Dynamic Code Injection",
        description="Dynamic code generation from user input",
        severity=Severity.CRITICAL,
        cwe="CWE-94",
        owasp="A03:2021-Injection",
        pattern=re.compile(
            r"(new Function|eval|setTimeout|setInterval)\s*\("
            r"[^)]*\b(req\.|input|user)\b[^)]*",
            _I,
        ),
        remediation="Avoid dynamic code generation, use safe alternatives",
        confidence=0.9,
        tags=("code-injection", "dynamic", "cwe-top25"),
    ),
    SecurityRule(
        id="PRIVILEGE_ESCALATION",
        name="Improper Privilege Management",
        description="Potential privilege escalation vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-269",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(setuid|seteuid|setgid|setegid|sudo)"
            r"(?!.*\b(check|validate|authorize)\b)",
            _I,
        ),
        remediation="Implement proper privilege checks and validation",
        confidence=0.7,
        tags=("privilege", "escalation", "cwe-top25"),
    ),
    SecurityRule(
        id="RACE_CONDITION",
        name="Race Condition",
        description="Potential race condition in shared resource access",
        severity=Severity.MEDIUM,
        cwe="CWE-362",
        owasp="A04:2021-Insecure Design",
        pattern=re.compile(
            r"(global\.|this\.)\w+(?!.*\b(lock|mutex|atomic|synchronized)\b)", _I
        ),
        remediation="Implement proper synchronization mechanisms",
        confidence=0.3,
        tags=("race-condition", "concurrency", "cwe-top25"),
    ),
    SecurityRule(
        id="INTEGER_OVERFLOW",
        name="Integer Overflow",
        description="Potential integer overflow in arithmetic operations",
        severity=Severity.MEDIUM,
        cwe="CWE-190",
        owasp="A04:2021-Insecure Design",
        pattern=re.compile(r"\b(parseInt|parseFloat|Number)\s*\([^)]*\)\s*[+\-*]", _I),
        remediation="Add bounds checking for arithmetic operations",
        confidence=0.4,
        tags=("integer-overflow", "arithmetic", "cwe-top25"),
    ),
    SecurityRule(
        id="XXE_LIBXML_VULNERABILITY",
        name="XML Parser XXE Vulnerability",
        description="XML parser configured to process external entities",
        severity=Severity.HIGH,
        cwe="CWE-611",
        owasp="A05:2021-Security Misconfiguration",
        pattern=re.compile(
            r"(libxml|xmldom|xml2js)(?!.*\b(noent|false|disable.*entities)\b)", _I
        ),
        remediation="Disable external entity processing in XML parsers",
        confidence=0.8,
        tags=("xxe", "xml", "parser", "cwe-top25"),
    ),
    SecurityRule(
        id="USE_AFTER_FREE_JS",
        name="Use After Free Pattern",
        description="Potential use-after-free pattern in object management",
        severity=Severity.MEDIUM,
        cwe="CWE-416",
        owasp="A06:2021-Vulnerable and Outdated Components",
        pattern=re.compile(r"(delete\s+\w+|\.destroy\(\)|\.close\(\)).*\1", _I),
        remediation="Ensure proper object lifecycle management",
        confidence=0.5,
        tags=("use-after-free", "memory", "cwe-top25"),
    ),
    SecurityRule(
        id="INCORRECT_AUTHORIZATION",
        name="Incorrect Authorization Logic",
        description="Authorization logic that may be bypassed",
        severity=Severity.HIGH,
        cwe="CWE-863",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(
            r"(if.*\|\||&&.*false|return.*true).*\b(auth|permission|role)\b", _I
        ),
        remediation="Review and strengthen authorization logic",
        confidence=0.6,
        tags=("authorization", "logic-flaw", "cwe-top25"),
    ),
    SecurityRule(
        id="MISSING_AUTHENTICATION",
        name="Missing Authentication",
        description="Critical function accessible without authentication",
        severity=Severity.CRITICAL,
        cwe="CWE-306",
        owasp="A07:2021-Identification and Authentication Failures",
        pattern=re.compile(
            r"(admin|delete|modify|create).*\.(get|post|put|delete)"
            r"(?!.*\b(auth|login|authenticate|verify)\b)",
            _I,
        ),
        remediation="Add authentication requirements for critical functions",
        confidence=0.5,
        tags=("authentication", "critical-function", "cwe-top25"),
    ),
    SecurityRule(
        id="INCORRECT_PERMISSIONS",
        name="Incorrect File/Resource Permissions",
        description="Overly permissive file or resource permissions",
        severity=Severity.MEDIUM,
        cwe="CWE-732",
        owasp="A01:2021-Broken Access Control",
        pattern=re.compile(r"(chmod|umask)\s*\(\s*(777|666|755)", _I),
        remediation="Use least-privilege permissions for files and resources",
        confidence=0.8,
        tags=("permissions", "filesystem", "cwe-top25"),
    ),
    SecurityRule(
        id="NULL_REFERENCE",
        name="Null Reference Access",
        description="Potential null or undefined reference access",
        severity=Severity.MEDIUM,
        cwe="CWE-476",
        owasp="A06:2021-Vulnerable and Outdated Components",
        pattern=re.compile(r"\w+\.\w+(?!.*\b(null|undefined|exists|check)\b)", _I),
        remediation="Add null/undefined checks before object access",
        confidence=0.2,
        tags=("null-reference", "undefined", "cwe-top25"),
    ),
    SecurityRule(
        id="HARDCODED_DATABASE_CREDENTIALS",
        name="Hardcoded Database Credentials",
        description="Database credentials hardcoded in connection strings",
        severity=Severity.CRITICAL,
        cwe="CWE-798",
        owasp="A02:2021-Cryptographic Failures",
        pattern=re.compile(r"(mongodb|mysql|postgres|redis)://[^:]+:[^@]+@", _I),
        remediation="Use environment variables or secure credential stores",
        confidence=0.95,
        tags=("hardcoded-credentials", "database", "cwe-top25"),
    ),
]

# Extension → rule ids allowed for that file type. ``None`` means every rule.
_ALL = None
EXTENSION_RULES: dict[str, frozenset[str] | None] = {
    ".js": _ALL,
    ".ts": _ALL,
    ".jsx": _ALL,
    ".tsx": _ALL,
    ".py": frozenset({"SQL_INJECTION", "COMMAND_INJECTION", "PATH_TRAVERSAL"}),
    ".java": frozenset({"SQL_INJECTION", "XSS_VULNERABILITY", "COMMAND_INJECTION"}),
    ".php": frozenset(
        {"SQL_INJECTION", "XSS_VULNERABILITY", "COMMAND_INJECTION", "PATH_TRAVERSAL"}
    ),
    ".xml": frozenset({"XXE_INJECTION"}),
}


def is_rule_applicable(rule: SecurityRule, file_path: str) -> bool:
    """Whether ``rule`` should run against a file with this extension."""
    ext = Path(file_path).suffix.lower()
    if ext not in EXTENSION_RULES:
        return False
    allowed = EXTENSION_RULES[ext]
    return allowed is None or rule.id in allowed
