import base64
import hashlib
import hmac
import io
from pathlib import Path

import pytest

from remotefind.knownhosts import (
    HostKeyRejected,
    TrustEntry,
    hex_fingerprint,
    known_fingerprint,
    load_trust_store,
    parse_line,
    verify_host_key,
)

KEY = b'\x00\x00\x00\x0bssh-ed25519\x00\x00\x00\x20' + bytes(range(32))
OTHER_KEY = b'\x00\x00\x00\x0bssh-ed25519\x00\x00\x00\x20' + bytes(range(1, 33))
SALT = bytes(range(20))


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def hashed_host(host: str, salt: bytes = SALT) -> str:
    digest = hmac.new(salt, host.encode(), hashlib.sha1).digest()
    return f'|1|{b64(salt)}|{b64(digest)}'


@pytest.fixture
def known_hosts(tmp_path: Path) -> Path:
    path = tmp_path / 'known_hosts'
    path.write_text(
        '# comment\n'
        '\n'
        f'alpha,alpha.example.com ssh-ed25519 {b64(KEY)}\n'
        f'{hashed_host("beta.example.com")} ssh-ed25519 {b64(KEY)} user@beta\n'
        f'[gamma]:2222 ssh-ed25519 {b64(KEY)}\n'
        'broken-line\n'
        f'delta ssh-ed25519 not*base64\n'
        f'@cert-authority *.example.com ssh-ed25519 {b64(OTHER_KEY)}\n'
        f'alpha ssh-ed25519 {b64(OTHER_KEY)}\n'
    )
    return path


def test_parse_plain_line():
    entry = parse_line(f'a,b ssh-rsa {b64(KEY)} comment')
    assert entry == TrustEntry('ssh-rsa', KEY, host_pattern='a,b')
    assert entry.fingerprint_hash == hashlib.sha1(KEY).digest()


def test_parse_hashed_line():
    entry = parse_line(f'{hashed_host("h")} ssh-rsa {b64(KEY)}')
    assert entry.salt == SALT
    assert entry.host_pattern is None


def test_parse_skips_comments_and_markers():
    assert parse_line('  # nothing here') is None
    assert parse_line('') is None
    assert parse_line(f'@revoked h ssh-rsa {b64(KEY)}') is None


def test_plain_pattern_matching():
    entry = parse_line(f'alpha,alpha.example.com ssh-ed25519 {b64(KEY)}')
    assert entry.matches('alpha')
    assert entry.matches('alpha.example.com')
    assert not entry.matches('alph')
    assert not entry.matches('alpha,alpha.example.com')


def test_hashed_entry_matches_only_its_host():
    entry = parse_line(f'{hashed_host("beta.example.com")} ssh-ed25519 {b64(KEY)}')
    assert entry.matches('beta.example.com')
    for other in ('beta', 'beta.example.org', 'BETA.example.com', ''):
        assert not entry.matches(other)
    salted = parse_line(f'{hashed_host("beta.example.com", salt=b"x" * 20)} ssh-ed25519 {b64(KEY)}')
    assert salted.matches('beta.example.com')
    assert salted.hmac_digest != entry.hmac_digest


def test_load_skips_malformed_lines(known_hosts):
    entries = load_trust_store(str(known_hosts))
    assert len(entries) == 4


def test_missing_store_is_empty(tmp_path):
    assert load_trust_store(str(tmp_path / 'nope')) == []


def test_first_matching_line_wins(known_hosts):
    entries = load_trust_store(str(known_hosts))
    assert known_fingerprint(entries, 'alpha') == hashlib.sha1(KEY).digest()
    assert known_fingerprint(entries, 'beta.example.com') == hashlib.sha1(KEY).digest()
    assert known_fingerprint(entries, '[gamma]:2222') == hashlib.sha1(KEY).digest()
    assert known_fingerprint(entries, 'gamma') is None


def test_hex_fingerprint():
    assert hex_fingerprint(b'\x00\xab\x10') == '00:ab:10'


def verify(known_hosts, host, key, answer=None):
    prompts = []
    stream = io.StringIO()

    def confirm(question):
        prompts.append(question)
        return answer

    verify_host_key(host, hashlib.sha1(key).digest(), 'ssh-ed25519', hashlib.md5(key).digest(),
                    str(known_hosts), confirm=confirm, stream=stream)
    return prompts, stream.getvalue()


def test_known_key_proceeds_silently(known_hosts):
    assert verify(known_hosts, 'alpha', KEY) == ([], '')
    assert verify(known_hosts, 'beta.example.com', KEY) == ([], '')


def test_unknown_host_prompts(known_hosts):
    prompts, shown = verify(known_hosts, 'unknown', KEY, answer='yes')
    assert len(prompts) == 1
    assert "can't be established" in shown
    assert f'ssh-ed25519 key fingerprint is {hex_fingerprint(hashlib.md5(KEY).digest())}' in shown


def test_changed_key_prompts(known_hosts):
    prompts, shown = verify(known_hosts, 'alpha', OTHER_KEY, answer='yes')
    assert len(prompts) == 1
    assert 'does not match' in shown


@pytest.mark.parametrize('answer', ['no', 'YES', 'y', '', ' yes'])
def test_anything_but_yes_aborts(known_hosts, answer):
    with pytest.raises(HostKeyRejected):
        verify(known_hosts, 'unknown', KEY, answer=answer)


@pytest.mark.parametrize('interruption', [EOFError, KeyboardInterrupt])
def test_unanswered_prompt_aborts(known_hosts, interruption):
    def confirm(question):
        raise interruption()

    with pytest.raises(HostKeyRejected):
        verify_host_key('unknown', hashlib.sha1(KEY).digest(), 'ssh-ed25519', hashlib.md5(KEY).digest(),
                        str(known_hosts), confirm=confirm, stream=io.StringIO())
