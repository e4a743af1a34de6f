"""Identity store -- named PEM artifacts in a flat directory.

Every identity ``X`` owns up to three files:

* ``X.crt`` -- PEM certificate
* ``X.key`` -- PEM private key (PKCS#1 for RSA, SEC1 for EC), mode 0600
* ``X.crl`` -- PEM CRL, only for authorities that revoked something

Writes go to a temporary file in the same directory and are renamed
into place, so readers never see a half-written artifact.  The store
also hands out one lock per name; callers hold it across
read-then-write sequences (existence check + save, CRL update).
"""

from __future__ import annotations

import contextlib
import logging
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from twocca.ca.base import (
    CaKeyNotFoundError,
    FilesystemUnavailableError,
    Identity,
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    MalformedCrlError,
    SigningAuthorityNotFoundError,
)

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import dh
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

log = logging.getLogger(__name__)

CERT_SUFFIX = ".crt"
KEY_SUFFIX = ".key"
CRL_SUFFIX = ".crl"

_CERT_MODE = 0o644
_KEY_MODE = 0o600


class IdentityStore:
    """Load and persist identities and CRLs under *directory*."""

    def __init__(self, directory: str | Path = ".") -> None:
        self._directory = Path(directory)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    # -- paths & locks ------------------------------------------------------

    def path_for(self, name: str, suffix: str) -> Path:
        return self._directory / f"{name}{suffix}"

    def lock(self, name: str) -> threading.Lock:
        """Return the lock serialising mutations of identity *name*."""
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock

    # -- existence ----------------------------------------------------------

    def ensure_absent(self, name: str) -> None:
        """Raise :class:`IdentityAlreadyExistsError` if *name* is taken."""
        for suffix in (CERT_SUFFIX, KEY_SUFFIX):
            path = self.path_for(name, suffix)
            if path.exists():
                msg = f"identity named {path.name} already exists in {self._directory}"
                raise IdentityAlreadyExistsError(msg)

    # -- loading ------------------------------------------------------------

    def load_certificate(self, name: str) -> x509.Certificate:
        """Load ``name.crt``.

        Raises
        ------
        IdentityNotFoundError
            If the file does not exist.
        FilesystemUnavailableError
            If it cannot be read or parsed.

        """
        path = self.path_for(name, CERT_SUFFIX)
        try:
            return x509.load_pem_x509_certificate(path.read_bytes())
        except FileNotFoundError:
            msg = f"Cannot find: {path}"
            raise IdentityNotFoundError(msg) from None
        except OSError as exc:
            msg = f"Cannot read {path}: {exc}"
            raise FilesystemUnavailableError(msg) from exc
        except ValueError as exc:
            msg = f"Failed to load certificate from {path}: {exc}"
            raise FilesystemUnavailableError(msg) from exc

    def load_private_key(self, name: str) -> CertificateIssuerPrivateKeyTypes:
        """Load ``name.key``; raises :class:`CaKeyNotFoundError` on any failure."""
        path = self.path_for(name, KEY_SUFFIX)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            msg = f"Private key not found: {path}"
            raise CaKeyNotFoundError(msg) from None
        except OSError as exc:
            msg = f"Cannot read private key {path}: {exc}"
            raise CaKeyNotFoundError(msg) from exc
        try:
            key = serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError) as exc:
            msg = f"Failed to load private key from {path}: {exc}"
            raise CaKeyNotFoundError(msg) from exc
        self._check_key_permissions(path)
        return key  # type: ignore[return-value]

    @staticmethod
    def _check_key_permissions(key_path: Path) -> None:
        """Warn if private key file has overly permissive permissions."""
        try:
            mode = key_path.stat().st_mode
        except OSError:
            return
        if mode & (stat.S_IRGRP | stat.S_IROTH | stat.S_IWGRP | stat.S_IWOTH):
            log.warning(
                "Private key file '%s' has overly permissive "
                "permissions (mode=%o). Recommend chmod 600.",
                key_path,
                stat.S_IMODE(mode),
            )

    def load_identity(self, name: str) -> Identity:
        """Load the certificate and private key stored under *name*."""
        return Identity(
            name=name,
            certificate=self.load_certificate(name),
            private_key=self.load_private_key(name),
        )

    def load_authority(self, name: str) -> Identity:
        """Load *name* and check that it can sign.

        Raises
        ------
        SigningAuthorityNotFoundError
            If ``name.crt`` is missing.
        CaKeyNotFoundError
            If ``name.key`` is missing or unreadable.
        InvalidSigningAuthorityError
            If key and certificate do not form a usable CA.

        """
        try:
            identity = self.load_identity(name)
        except IdentityNotFoundError as exc:
            msg = f"Cannot find CA certificate for '{name}': {exc.detail}"
            raise SigningAuthorityNotFoundError(msg) from None
        identity.validate_as_signer()
        log.debug("Loaded signing authority '%s' from %s", name, self._directory)
        return identity

    def load_crl(self, name: str) -> x509.CertificateRevocationList | None:
        """Load ``name.crl``, or return ``None`` when there is none yet."""
        path = self.path_for(name, CRL_SUFFIX)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Cannot read {path}: {exc}"
            raise FilesystemUnavailableError(msg) from exc
        try:
            return x509.load_pem_x509_crl(data)
        except ValueError as exc:
            msg = f"Cannot parse CRL {path}: {exc}"
            raise MalformedCrlError(msg) from exc

    # -- persistence --------------------------------------------------------

    def ensure_directory(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create store directory {self._directory}: {exc}"
            raise FilesystemUnavailableError(msg) from exc

    def _write_temp(self, data: bytes, mode: int) -> Path:
        """Write *data* to a new temporary file in the store directory."""
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.chmod(mode)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        return tmp_path

    def save_identity(
        self,
        name: str,
        certificate: x509.Certificate,
        private_key: CertificateIssuerPrivateKeyTypes,
    ) -> tuple[Path, Path]:
        """Persist ``name.key`` and ``name.crt``; both or neither.

        Returns
        -------
        tuple[Path, Path]
            The certificate and key paths.

        """
        self.ensure_directory()
        cert_path = self.path_for(name, CERT_SUFFIX)
        key_path = self.path_for(name, KEY_SUFFIX)
        key_pem = private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        cert_pem = certificate.public_bytes(serialization.Encoding.PEM)

        tmp_paths: list[Path] = []
        try:
            key_tmp = self._write_temp(key_pem, _KEY_MODE)
            tmp_paths.append(key_tmp)
            cert_tmp = self._write_temp(cert_pem, _CERT_MODE)
            tmp_paths.append(cert_tmp)

            key_tmp.replace(key_path)
            try:
                cert_tmp.replace(cert_path)
            except OSError:
                key_path.unlink(missing_ok=True)
                raise
        except OSError as exc:
            msg = f"Cannot write {name}.[crt|key] in {self._directory}: {exc}"
            raise FilesystemUnavailableError(msg) from exc
        finally:
            for tmp in tmp_paths:
                with contextlib.suppress(OSError):
                    tmp.unlink(missing_ok=True)

        log.debug("Saved identity '%s' to %s", name, self._directory)
        return cert_path, key_path

    def save_crl(self, name: str, crl: x509.CertificateRevocationList) -> Path:
        """Atomically replace ``name.crl`` with *crl*."""
        self.ensure_directory()
        path = self.path_for(name, CRL_SUFFIX)
        try:
            tmp = self._write_temp(
                crl.public_bytes(serialization.Encoding.PEM),
                _CERT_MODE,
            )
            tmp.replace(path)
        except OSError as exc:
            msg = f"Cannot write {path}: aborting ({exc})"
            raise FilesystemUnavailableError(msg) from exc
        return path

    def save_dh_parameters(self, bits: int, parameters: dh.DHParameters) -> Path:
        """Atomically write *parameters* as PKCS#3 PEM to ``dhBITS.pem``."""
        self.ensure_directory()
        path = self.path_for(f"dh{bits}", ".pem")
        try:
            tmp = self._write_temp(
                parameters.parameter_bytes(
                    serialization.Encoding.PEM,
                    serialization.ParameterFormat.PKCS3,
                ),
                _CERT_MODE,
            )
            tmp.replace(path)
        except OSError as exc:
            msg = f"Cannot write {path}: {exc}"
            raise FilesystemUnavailableError(msg) from exc
        return path
